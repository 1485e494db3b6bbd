from pathlib import Path

from aioradiosync.cli import build_config, main_async, parse_args
from aioradiosync.models import Mode


def test_defaults() -> None:
    args = parse_args([])
    assert args.port == 3001
    config = build_config(args)
    assert config.music_dir(Mode.DAY) == Path("music")
    assert config.music_dir(Mode.NIGHT) == Path("music")
    assert config.timezone == "Europe/Kyiv"


def test_night_directory_and_window(tmp_path: Path) -> None:
    args = parse_args(
        [
            "--music-dir",
            str(tmp_path / "day"),
            "--night-dir",
            str(tmp_path / "night"),
            "--day-start",
            "7",
            "--day-end",
            "23",
            "--interval",
            "1.5",
        ]
    )
    config = build_config(args)
    assert config.music_dir(Mode.NIGHT) == tmp_path / "night"
    assert (config.day_start_hour, config.day_end_hour) == (7, 23)
    assert config.broadcast_interval_s == 1.5


async def test_exit_code_on_empty_catalog(tmp_path: Path) -> None:
    assert await main_async(["--music-dir", str(tmp_path)]) == 1


async def test_exit_code_on_bad_config(tmp_path: Path) -> None:
    assert await main_async(["--music-dir", str(tmp_path), "--timezone", "Nowhere/Town"]) == 2
