from unittest.mock import patch

from cloudasset.core.exceptions import ConfigurationError
from cloudasset.main import EXIT_CONFIG_ERROR, EXIT_OK, main


def test_check_config_validates_and_exits(tmp_path):
    config_file = tmp_path / "cloudasset.yml"
    config_file.write_text("aws:\n  regions: [eu-west-1]\n", encoding="utf-8")

    with patch("cloudasset.main.InventoryRunner") as runner_cls:
        assert main(["--config", str(config_file), "--check-config"]) == EXIT_OK

    runner_cls.assert_not_called()


def test_invalid_config_exits_with_status_2(tmp_path):
    config_file = tmp_path / "cloudasset.yml"
    config_file.write_text("gcp:\n  projects: []\n", encoding="utf-8")

    assert main(["--config", str(config_file)]) == EXIT_CONFIG_ERROR


def test_runner_configuration_error_exits_with_status_2(tmp_path):
    config_file = tmp_path / "cloudasset.yml"
    config_file.write_text("{}\n", encoding="utf-8")

    with patch("cloudasset.main.InventoryRunner") as runner_cls:
        runner_cls.return_value.run.side_effect = ConfigurationError("No provider configured")
        assert main(["--config", str(config_file)]) == EXIT_CONFIG_ERROR
