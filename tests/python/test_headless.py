import csv
import json

from agentfield.app.headless import run_headless


def _read_csv(path):
    with path.open(newline="") as handle:
        return list(csv.reader(handle))


def test_headless_log_header_includes_observables(tmp_path):
    log_path = tmp_path / "schelling.csv"
    run_headless(steps=2, seed=1, log_path=log_path, scenario="schelling", deterministic_log=True)
    rows = _read_csv(log_path)
    assert len(rows) == 3
    assert rows[0] == [
        "tick",
        "population",
        "processed",
        "skipped",
        "created",
        "removed",
        "relocations",
        "tick_ms",
        "happy",
        "happy_1",
        "happy_2",
    ]
    assert rows[1][0] == "0"
    assert rows[2][0] == "1"
    assert all(row[7] == "0.000" for row in rows[1:])


def test_headless_deterministic_logs_match(tmp_path):
    first = tmp_path / "a.csv"
    second = tmp_path / "b.csv"
    run_headless(steps=5, seed=9, log_path=first, scenario="flocking", deterministic_log=True)
    run_headless(steps=5, seed=9, log_path=second, scenario="flocking", deterministic_log=True)
    assert first.read_text() == second.read_text()
    assert _read_csv(first)[0][-1] == "polarization"


def test_headless_reads_yaml_config(tmp_path):
    config_path = tmp_path / "zombie.yaml"
    config_path.write_text(
        "scenario: zombie\n"
        "seed: 3\n"
        "zombie:\n"
        "  total_participants: 12\n"
        "  countdown: 2\n"
        "  extent: [0.5, 0.5]\n"
        "  venue: [0.25, 0.25]\n"
    )
    history = run_headless(steps=3, seed=None, log_path=None, config_path=config_path)
    assert [metrics.population for metrics in history] == [12, 12, 12]
    assert history[-1].observables["zombies"] >= 1.0
    assert history[-1].observables["humans"] == 12.0 - history[-1].observables["zombies"]


def test_headless_summary_output(tmp_path):
    summary_path = tmp_path / "summary.json"
    run_headless(
        steps=4,
        seed=3,
        log_path=None,
        scenario="schelling",
        deterministic_log=True,
        summary_path=summary_path,
    )
    payload = json.loads(summary_path.read_text())
    assert payload["scenario"] == "schelling"
    assert payload["steps"] == 4
    assert payload["seed"] == 3
    assert payload["tick_ms"]["max"] == 0.0
    assert payload["population"]["min"] == payload["population"]["max"] == 720.0
    assert "relocations" in payload
    assert "first_quiet_tick" in payload
    assert set(payload["final_observables"]) == {"happy", "happy_1", "happy_2"}
