"""Tests for the remaining utils modules.

Covers:
- Validators (render config schema, defaults vs YAML file, fill rule / cap names)
- Hashing (bytes, arrays, files)
- Profiler timer
- Logging idempotency, JSON output, runtime level changes and the excepthook

Run with: pytest tests/test_utils.py -v
"""

import json
import logging
import sys
from pathlib import Path

import numpy as np
import pytest

from graphics_buffer.utils import hashing, logging_config, profiler, validators


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(scope="module")
def project_root():
    """Project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() side effects on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging_config.pop_context()


# ============================================================================
# VALIDATORS
# ============================================================================

def test_yaml_config_matches_defaults(project_root):
    cfg = validators.load_render_config(project_root / "configs/render.v1.yaml")
    assert cfg.model_dump() == validators.default_render_config().model_dump()


def test_config_rejects_bad_values(tmp_path):
    bad = tmp_path / "render.yaml"
    bad.write_text("schema: render.v1\nrasterizer:\n  subsamples: 12\n")
    with pytest.raises(ValueError, match="power of two"):
        validators.load_render_config(bad)

    bad.write_text("schema: render.v2\n")
    with pytest.raises(ValueError, match="render.v1"):
        validators.load_render_config(bad)

    bad.write_text("codec:\n  default_format: jpeg\n")
    with pytest.raises(ValueError, match="default_format"):
        validators.load_render_config(bad)


def test_config_partial_file_takes_defaults(tmp_path):
    p = tmp_path / "render.yaml"
    p.write_text("compositor:\n  workers: 4\n")
    cfg = validators.load_render_config(p)
    assert cfg.compositor.workers == 4
    assert cfg.rasterizer.subsamples == 16
    assert cfg.codec.default_format == "PNG"


def test_config_assignment_is_validated():
    cfg = validators.default_render_config()
    cfg.compositor.workers = 4
    assert cfg.compositor.workers == 4
    with pytest.raises(ValueError, match="workers"):
        cfg.compositor.workers = 0
    with pytest.raises(ValueError, match="sampling"):
        cfg.blitter.sampling = "bicubic"
    assert cfg.compositor.workers == 4
    assert cfg.blitter.sampling == "nearest"


def test_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        validators.load_render_config(tmp_path / "missing.yaml")


def test_fill_rule_and_cap_names():
    assert validators.validate_fill_rule("nonzero") == "nonzero"
    assert validators.validate_fill_rule("Even-Odd") == "evenodd"
    with pytest.raises(ValueError):
        validators.validate_fill_rule("winding")
    assert validators.validate_line_cap("round") == "round"
    with pytest.raises(ValueError):
        validators.validate_line_cap("Round")


def test_flatten_config():
    flat = validators.flatten_config(validators.default_render_config())
    assert flat["rasterizer.subsamples"] == 16
    assert flat["line.default_cap"] == "butt"


# ============================================================================
# HASHING
# ============================================================================

def test_sha256_array_distinguishes_shape():
    a = np.zeros((2, 8, 4), dtype=np.uint8)
    b = np.zeros((4, 4, 4), dtype=np.uint8)
    assert a.tobytes() == b.tobytes()
    assert hashing.sha256_array(a) != hashing.sha256_array(b)
    assert hashing.sha256_array(a) == hashing.sha256_array(a.copy())
    assert len(hashing.sha256_array(a)) == 64


def test_sha256_file(tmp_path):
    p = tmp_path / "f.bin"
    p.write_bytes(b"hello")
    assert hashing.sha256_file(p, chunk_size=2) == hashing.sha256_bytes(b"hello")
    with pytest.raises(FileNotFoundError):
        hashing.sha256_file(tmp_path / "missing")


# ============================================================================
# PROFILER
# ============================================================================

def test_profiler_timer():
    times = []
    with profiler.timer('test_op', sink=lambda n, t: times.append((n, t))):
        sum(range(10_000))
    assert len(times) == 1
    assert times[0][0] == 'test_op' and times[0][1] >= 0


def test_profiler_timer_reports_on_error():
    times = []
    with pytest.raises(RuntimeError):
        with profiler.timer('failing', sink=lambda n, t: times.append(t)):
            raise RuntimeError("boom")
    assert len(times) == 1


# ============================================================================
# LOGGING
# ============================================================================

def test_logging_idempotency(tmp_path, restore_root_logger):
    """File output, JSON mode and no duplicated handlers on re-setup."""
    log_path = tmp_path / "test.log"

    for _ in range(2):
        logging_config.setup_logging(
            log_level="INFO",
            log_file=str(log_path),
            json=True,
            to_stderr=False,
            capture_warnings=False,
            context={"app": "test"}
        )
    logger = logging_config.get_logger("utils_test")
    logger.info("hello")
    logger.debug("hidden")

    lines = log_path.read_text().strip().splitlines()
    assert len(lines) == 1

    rec = json.loads(lines[0])
    assert rec["msg"] == "hello"
    assert rec["lvl"] == "INFO"
    assert rec.get("app") == "test"


def test_logging_context_push_pop(restore_root_logger):
    logging_config.pop_context()
    logging_config.push_context(buffer="100x100", frame=3)
    assert logging_config.get_context() == {"buffer": "100x100", "frame": 3}
    logging_config.pop_context(keys=["frame"])
    assert logging_config.get_context() == {"buffer": "100x100"}
    logging_config.pop_context()
    assert logging_config.get_context() == {}


def test_human_format_includes_context():
    fmt = logging_config.ContextFormatter("human", use_color=False)
    logging_config.push_context(app="render_examples")
    try:
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "Saved %s", ("a.png",), None)
        line = fmt.format(record)
    finally:
        logging_config.pop_context()
    assert "INFO" in line
    assert "app=render_examples" in line
    assert line.endswith("Saved a.png")


def test_unknown_log_level(restore_root_logger):
    with pytest.raises(ValueError, match="log level"):
        logging_config.setup_logging(log_level="LOUD", to_stderr=False, capture_warnings=False)


def test_set_level(restore_root_logger):
    logging_config.setup_logging(log_level="INFO", to_stderr=False, capture_warnings=False)
    logging_config.set_level("debug")
    assert logging.getLogger().level == logging.DEBUG
    logging_config.set_level("ERROR")
    assert logging.getLogger().level == logging.ERROR


def test_excepthook_logs_uncaught(monkeypatch, caplog):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    logging_config.install_excepthook()
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        exc_info = (type(e), e, e.__traceback__)

    with caplog.at_level(logging.CRITICAL):
        sys.excepthook(*exc_info)
    records = [r for r in caplog.records if r.levelno == logging.CRITICAL]
    assert len(records) == 1
    assert records[0].getMessage() == "Uncaught exception"
    assert records[0].exc_info[1] is exc_info[1]
