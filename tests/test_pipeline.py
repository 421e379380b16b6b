import json
from pathlib import Path

import pytest

from ffnn import config as config_mod
from ffnn import storage
from ffnn.data.mnist import build_fixture
from ffnn.training import pipelines


@pytest.fixture
def run_config(tmp_path):
    train_csv = build_fixture(tmp_path / "data" / "train.csv", n_rows=20, seed=0)
    test_csv = build_fixture(tmp_path / "data" / "test.csv", n_rows=10, seed=1)
    override = {
        "data": {"train_csv": str(train_csv), "test_csv": str(test_csv)},
        "train": {"epochs": 2, "seed": 11, "run_dir": str(tmp_path / "run")},
        "storage": {"model_path": str(tmp_path / "models" / "net")},
    }
    return config_mod.resolve("mnist-small", override=override, environ={})


def test_train_new_produces_model_and_artifacts(run_config, tmp_path):
    result = pipelines.train_new(run_config)

    assert result.action == "new"
    assert Path(result.model_path) == tmp_path / "models" / "net.ffnn"
    assert (tmp_path / "models" / "net-0.fflayer").exists()
    assert (tmp_path / "models" / "net-1.fflayer").exists()

    lines = Path(result.metrics_path).read_text().splitlines()
    assert [json.loads(line)["epoch"] for line in lines] == [1, 2]
    assert json.loads(lines[0])["split"] == "train"
    assert (tmp_path / "run" / "metrics_train.csv").exists()
    assert not (tmp_path / "run" / "loss.png").exists()

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["network"]["input_size"] == 784
    assert manifest["dataset"]["path"].endswith("train.csv")
    assert result.metrics["examples"] == 20.0


def test_seeded_training_is_reproducible(run_config, tmp_path):
    first = storage.load(pipelines.train_new(run_config).model_path)
    weights = first.layer(0).weights.copy()
    second = storage.load(pipelines.train_new(run_config).model_path)
    assert (second.layer(0).weights == weights).all()


def test_train_existing_continues_from_saved_model(run_config):
    pipelines.train_new(run_config)
    before = storage.load(run_config["storage"]["model_path"]).layer(1).weights.copy()
    result = pipelines.train_existing(run_config)
    after = storage.load(result.model_path).layer(1).weights
    assert result.action == "existing"
    assert not (after == before).all()


def test_test_existing_scores_saved_model(run_config, tmp_path):
    pipelines.train_new(run_config)
    result = pipelines.test_existing(run_config)
    assert result.action == "test"
    assert result.metrics["examples"] == 10.0
    assert 0.0 <= result.metrics["accuracy"] <= 1.0
    assert result.metrics["score"] == round(result.metrics["accuracy"] * 10)
    saved = json.loads((tmp_path / "run" / "metrics_test.json").read_text())
    assert saved["examples"] == 10.0


def test_existing_actions_need_a_saved_model(run_config):
    with pytest.raises(FileNotFoundError):
        pipelines.train_existing(run_config)
    with pytest.raises(FileNotFoundError):
        pipelines.run_action("test", run_config)
    with pytest.raises(KeyError):
        pipelines.run_action("resume", run_config)


def test_enable_plots_writes_loss_curve(run_config, tmp_path):
    pytest.importorskip("matplotlib")
    run_config["train"]["enable_plots"] = True
    pipelines.train_new(run_config)
    assert (tmp_path / "run" / "loss.png").exists()
