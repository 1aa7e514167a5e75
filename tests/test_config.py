import argparse
import os
import tempfile

import pytest
from pydantic import ValidationError

from iamrisk.config import DEFAULT_RESULTS_DIR, DEFAULT_SESSION_DIR, IamRiskConfig
from iamrisk.usage import load_yaml_config, merge_configs, parse_cli_args


class TestIamRiskConfig:
    """Test IamRiskConfig defaults and validation."""

    def test_defaults(self) -> None:
        """Test every field has a usable default."""
        config = IamRiskConfig()
        assert config.region == "us-east-1"
        assert config.sso_region is None
        assert config.results_dir == DEFAULT_RESULTS_DIR
        assert config.session_dir == DEFAULT_SESSION_DIR
        assert config.session_key == "default"
        assert config.session_ttl_seconds == 3600
        assert config.item_timeout_seconds == 30.0

    def test_effective_sso_region_falls_back_to_region(self) -> None:
        """Test effective_sso_region uses region when sso_region is unset."""
        assert IamRiskConfig(region="eu-west-1").effective_sso_region == "eu-west-1"
        assert IamRiskConfig(region="eu-west-1", sso_region="us-west-2").effective_sso_region == "us-west-2"

    def test_non_positive_timeout_rejected(self) -> None:
        """Test item_timeout_seconds must be positive."""
        with pytest.raises(ValidationError) as exc_info:
            IamRiskConfig(item_timeout_seconds=0)
        assert "item_timeout_seconds" in str(exc_info.value)

    def test_non_positive_ttl_rejected(self) -> None:
        """Test session_ttl_seconds must be positive."""
        with pytest.raises(ValidationError):
            IamRiskConfig(session_ttl_seconds=-1)

    def test_invalid_timeout_type(self) -> None:
        """Test item_timeout_seconds must be numeric."""
        with pytest.raises(ValidationError):
            IamRiskConfig(item_timeout_seconds="soon")  # type: ignore


class TestLoadYamlConfig:
    """Test load_yaml_config."""

    def test_loads_mapping(self) -> None:
        """Test a YAML mapping is returned as a dict."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "config.yaml")
            with open(path, 'w') as f:
                f.write("region: eu-west-1\nsso_region: us-west-2\nitem_timeout_seconds: 5\n")

            assert load_yaml_config(path) == {
                "region": "eu-west-1",
                "sso_region": "us-west-2",
                "item_timeout_seconds": 5,
            }

    def test_missing_file_returns_empty(self) -> None:
        """Test a missing file is tolerated."""
        with tempfile.TemporaryDirectory() as temp_dir:
            assert load_yaml_config(os.path.join(temp_dir, "missing.yaml")) == {}

    def test_empty_file_returns_empty(self) -> None:
        """Test an empty file loads as an empty mapping."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "empty.yaml")
            open(path, 'w').close()

            assert load_yaml_config(path) == {}

    def test_non_mapping_rejected(self) -> None:
        """Test a YAML list is rejected."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "list.yaml")
            with open(path, 'w') as f:
                f.write("- region\n- sso_region\n")

            with pytest.raises(ValueError, match="must contain a mapping"):
                load_yaml_config(path)


class TestParseCliArgs:
    """Test parse_cli_args."""

    def test_defaults(self) -> None:
        """Test flags default to None or False."""
        args = parse_cli_args([])
        assert args.config is None
        assert args.targets_file is None
        assert args.region is None
        assert args.item_timeout_seconds is None
        assert args.stream is False
        assert args.reset_session is False
        assert args.cancel_after is None

    def test_all_flags(self) -> None:
        """Test every flag is parsed into its destination."""
        args = parse_cli_args([
            "--config", "config.yaml",
            "--targets-file", "targets.json",
            "--region", "eu-west-1",
            "--sso-region", "us-west-2",
            "--results-dir", "out",
            "--session-dir", "out/sessions",
            "--item-timeout", "2.5",
            "--stream",
            "--reset-session",
            "--cancel-after", "3",
        ])
        assert args.config == "config.yaml"
        assert args.targets_file == "targets.json"
        assert args.region == "eu-west-1"
        assert args.sso_region == "us-west-2"
        assert args.results_dir == "out"
        assert args.session_dir == "out/sessions"
        assert args.item_timeout_seconds == 2.5
        assert args.stream is True
        assert args.reset_session is True
        assert args.cancel_after == 3

    def test_invalid_timeout_exits(self) -> None:
        """Test a non-numeric timeout is rejected by argparse."""
        with pytest.raises(SystemExit):
            parse_cli_args(["--item-timeout", "soon"])


class TestMergeConfigs:
    """Test merge_configs."""

    def test_cli_overrides_yaml(self) -> None:
        """Test CLI values win over YAML values."""
        cli_args = parse_cli_args(["--region", "eu-west-1"])
        config = merge_configs({"region": "us-east-2", "sso_region": "us-west-2"}, cli_args)

        assert config.region == "eu-west-1"
        assert config.sso_region == "us-west-2"

    def test_unset_cli_values_keep_yaml(self) -> None:
        """Test None CLI values do not clear YAML values."""
        config = merge_configs({"results_dir": "reports"}, parse_cli_args([]))
        assert config.results_dir == "reports"

    def test_non_config_flags_ignored(self) -> None:
        """Test CLI-only flags are not passed to the config model."""
        cli_args = argparse.Namespace(stream=True, cancel_after=2, targets_file="t.json", region=None)
        config = merge_configs({}, cli_args)
        assert config == IamRiskConfig()

    def test_yaml_not_mutated(self) -> None:
        """Test the YAML dict is copied before merging."""
        yaml_config = {"region": "us-east-2"}
        merge_configs(yaml_config, parse_cli_args(["--region", "eu-west-1"]))
        assert yaml_config == {"region": "us-east-2"}

    def test_invalid_value_raises(self) -> None:
        """Test validation errors surface from the merge."""
        with pytest.raises(ValidationError):
            merge_configs({"item_timeout_seconds": -5}, parse_cli_args([]))
