from pathlib import Path

from config import Settings


def test_settings_read_env_file(tmp_path: Path):
    env_file = tmp_path / ".env"
    env_file.write_text("LOG_LEVEL=DEBUG\nRENDER_MAX_PASSES=9\n")
    loaded = Settings(_env_file=env_file)
    assert loaded.LOG_LEVEL == "DEBUG"
    assert loaded.RENDER_MAX_PASSES == 9
    assert loaded.content_width_mm == 184.0
