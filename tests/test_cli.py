import pandas as pd

from climb_intelligence.cli import build_parser, main


def _write_ride(path, seconds=300):
    altitude = [100.0 + 0.3 * min(max(s - 50, 0), 150) for s in range(seconds)]
    pd.DataFrame({
        'timestamp': pd.date_range("2025-06-01 08:00:00", periods=seconds, freq="1s"),
        'power': [250] * seconds,
        'distance': [s * 5.0 for s in range(seconds)],
        'altitude': altitude,
        'latitude': [45.0] * seconds,
        'longitude': [6.0] * seconds,
    }).to_csv(path, index=False)


def test_replay_then_history(tmp_path, capsys):
    ride = tmp_path / "ride.csv"
    _write_ride(ride)
    data_dir = str(tmp_path / "data")

    code = main(["--data-dir", data_dir, "replay", str(ride), "--ftp", "250", "--weight", "70"])
    out = capsys.readouterr().out
    assert code == 0
    assert "Replay completed" in out
    assert "Attempts saved: 1" in out

    assert main(["--data-dir", data_dir, "history"]) == 0
    out = capsys.readouterr().out
    assert "Stored climbs: 1" in out
    assert "Climb 1" in out


def test_replay_missing_file(tmp_path, capsys):
    code = main(["--data-dir", str(tmp_path), "replay", "missing.fit", "--ftp", "250", "--weight", "70"])
    assert code == 1
    assert "not found" in capsys.readouterr().out


def test_replay_unsupported_format(tmp_path, capsys):
    ride = tmp_path / "ride.gpx"
    ride.write_text("<gpx/>")
    code = main(["--data-dir", str(tmp_path), "replay", str(ride), "--ftp", "250", "--weight", "70"])
    assert code == 1
    assert "Unsupported" in capsys.readouterr().out


def test_history_for_unknown_climb(tmp_path, capsys):
    assert main(["--data-dir", str(tmp_path), "history", "--climb", "route_0_0"]) == 0
    assert "No attempts stored" in capsys.readouterr().out


def test_options_after_subcommand():
    args = build_parser().parse_args(["history", "--data-dir", "somewhere", "--verbose"])
    assert args.data_dir == "somewhere"
    assert args.verbose is True

    args = build_parser().parse_args(["history"])
    assert args.data_dir is None
    assert args.verbose is False
