import numpy as np
import pytest

from colorcal.core.types import CalibrationIOError
from colorcal.utils.debug_context import DebugContext, disabled


def test_steps_increase():
    ctx = DebugContext()
    assert ctx.step == 0
    assert [ctx.next_step() for _ in range(3)] == [1, 2, 3]


def test_disabled_writes_nothing(tmp_path):
    ctx = DebugContext(tmp_path, enabled=False)
    assert ctx.write("x", np.zeros((4, 4), dtype=np.uint8)) is None
    assert ctx.step == 0
    assert list(tmp_path.iterdir()) == []
    assert not disabled().enabled


def test_enabled_without_dir_is_disabled():
    assert not DebugContext(None, enabled=True).enabled


def test_write_names_files_by_step(tmp_path):
    ctx = DebugContext(tmp_path, enabled=True)
    first = ctx.write("first", np.zeros((4, 4), dtype=np.uint8))
    second = ctx.write("second", np.zeros((4, 4, 3), dtype=np.uint8))
    assert first.name == "1_first.png"
    assert second.name == "2_second.png"
    assert first.exists() and second.exists()


def test_failed_write_raises(tmp_path):
    ctx = DebugContext(tmp_path, enabled=True)
    with pytest.raises(CalibrationIOError):
        ctx.write("bad", np.zeros((4, 4, 7), dtype=np.uint8))
