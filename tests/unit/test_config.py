"""Unit tests for configuration management."""

import pytest
import yaml

from configguard.core.exceptions import ConfigurationError
from configguard.core.models import Action, HashAlgorithm, Severity
from configguard.core.policy import DEFAULT_POLICY_NAME
from configguard.utils.config import ConfigManager, OperatorConfig, load_default_scan_policy


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("LOG_LEVEL", "DEFAULT_SCANNER", "FAIL_FAST", "RECONCILE_TIMEOUT", "DEFAULT_SCAN_POLICY"):
        monkeypatch.delenv(f"CONFIGGUARD_{name}", raising=False)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.yaml"


@pytest.mark.unit
class TestOperatorConfig:
    """Test OperatorConfig validation."""

    def test_defaults(self):
        """Test an empty mapping yields the defaults."""
        config = OperatorConfig.from_dict({})

        assert config.log_level == "INFO"
        assert config.default_scanner == "detect-secrets"
        assert config.fail_fast is False
        assert config.reconcile_timeout is None

    def test_log_level_is_normalized(self):
        """Test log levels are upper-cased."""
        assert OperatorConfig.from_dict({"log_level": "debug"}).log_level == "DEBUG"

    @pytest.mark.parametrize("data", [
        {"log_level": "LOUD"},
        {"reconcile_timeout": 0},
        {"fail_fast": "sometimes"},
    ])
    def test_invalid_values(self, data):
        """Test invalid fields raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            OperatorConfig.from_dict(data)

    def test_to_dict(self):
        """Test converting to a dictionary."""
        data = OperatorConfig(fail_fast=True).to_dict()

        assert data["fail_fast"] is True
        assert data["log_level"] == "INFO"


@pytest.mark.unit
class TestDefaultScanPolicy:
    """Test decoding the configured default policy."""

    def test_empty_is_built_in_default(self):
        """Test no configuration yields ReportOnly at Medium."""
        policy = load_default_scan_policy(None)

        assert policy.metadata.name == DEFAULT_POLICY_NAME
        assert policy.spec.action is Action.REPORT_ONLY
        assert policy.spec.min_severity is Severity.MEDIUM

    def test_spec_mapping(self):
        """Test a bare spec mapping."""
        policy = load_default_scan_policy({"action": "AutoRemediate", "minSeverity": "High"})

        assert policy.metadata.name == DEFAULT_POLICY_NAME
        assert policy.spec.action is Action.AUTO_REMEDIATE
        assert policy.spec.min_severity is Severity.HIGH

    def test_manifest_string(self):
        """Test a full manifest given as a YAML string."""
        raw = yaml.safe_dump({
            "kind": "ScanPolicy",
            "metadata": {"name": "cluster-default"},
            "spec": {"action": "Ignore", "hashAlgorithm": "sha512"},
        })

        policy = load_default_scan_policy(raw)

        assert policy.metadata.name == "cluster-default"
        assert policy.spec.action is Action.IGNORE
        assert policy.spec.hash_algorithm is HashAlgorithm.SHA512

    def test_json_string(self):
        """Test a JSON spec string."""
        policy = load_default_scan_policy('{"action": "Ignore"}')

        assert policy.spec.action is Action.IGNORE

    @pytest.mark.parametrize("raw", ["action: [unclosed", "just a string"])
    def test_undecodable(self, raw):
        """Test strings that do not decode to a mapping are rejected."""
        with pytest.raises(ConfigurationError):
            load_default_scan_policy(raw)

    def test_null_spec_and_metadata(self):
        """Test null or non-mapping spec and metadata fall back to defaults."""
        policy = load_default_scan_policy({"metadata": "cluster-default", "spec": None})

        assert policy.metadata.name == DEFAULT_POLICY_NAME
        assert policy.spec.action is Action.REPORT_ONLY
        assert policy.spec.min_severity is Severity.MEDIUM

    def test_null_spec_string(self):
        """Test a manifest string with an empty spec."""
        policy = load_default_scan_policy("metadata: {name: cluster-default}\nspec:\n")

        assert policy.metadata.name == "cluster-default"
        assert policy.spec.action is Action.REPORT_ONLY

    @pytest.mark.parametrize("spec", ["ReportOnly", ["action", "Ignore"]])
    def test_non_mapping_spec(self, spec):
        """Test a spec that is not a mapping is rejected."""
        with pytest.raises(ConfigurationError):
            load_default_scan_policy({"spec": spec})


@pytest.mark.unit
class TestConfigManager:
    """Test ConfigManager loading and saving."""

    def test_missing_file_uses_defaults(self, config_path):
        """Test loading without a file."""
        config = ConfigManager(config_path, use_dotenv=False).load()

        assert config.log_level == "INFO"

    def test_load_file(self, config_path):
        """Test values are read from the YAML file."""
        config_path.write_text(yaml.safe_dump({
            "log_level": "WARNING",
            "fail_fast": True,
            "default_scan_policy": {"action": "AutoRemediate"},
        }))

        config = ConfigManager(config_path, use_dotenv=False).load()

        assert config.log_level == "WARNING"
        assert config.fail_fast is True
        assert config.scan_policy().spec.action is Action.AUTO_REMEDIATE

    def test_env_overrides_file(self, config_path, monkeypatch):
        """Test CONFIGGUARD_ variables win over the file."""
        config_path.write_text(yaml.safe_dump({"log_level": "WARNING", "reconcile_timeout": 10}))
        monkeypatch.setenv("CONFIGGUARD_LOG_LEVEL", "debug")
        monkeypatch.setenv("CONFIGGUARD_RECONCILE_TIMEOUT", "2.5")
        monkeypatch.setenv("CONFIGGUARD_FAIL_FAST", "true")

        config = ConfigManager(config_path, use_dotenv=False).load()

        assert config.log_level == "DEBUG"
        assert config.reconcile_timeout == 2.5
        assert config.fail_fast is True

    def test_env_policy_string(self, config_path, monkeypatch):
        """Test the default policy can come from the environment."""
        monkeypatch.setenv("CONFIGGUARD_DEFAULT_SCAN_POLICY", '{"action": "Ignore"}')

        config = ConfigManager(config_path, use_dotenv=False).load()

        assert config.scan_policy().spec.action is Action.IGNORE

    def test_invalid_yaml(self, config_path):
        """Test a broken config file raises ConfigurationError."""
        config_path.write_text("log_level: [oops\n")

        with pytest.raises(ConfigurationError):
            ConfigManager(config_path, use_dotenv=False).load()

    def test_non_mapping_file(self, config_path):
        """Test a config file must hold a mapping."""
        config_path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError):
            ConfigManager(config_path, use_dotenv=False).load()

    def test_save_and_reload(self, tmp_path):
        """Test saving creates parent directories and round-trips values."""
        path = tmp_path / "nested" / "config.yaml"
        manager = ConfigManager(path, use_dotenv=False)
        manager.save(OperatorConfig(default_scanner="stub", fail_fast=True))

        config = ConfigManager(path, use_dotenv=False).load()

        assert config.default_scanner == "stub"
        assert config.fail_fast is True

    def test_save_without_config(self, config_path):
        """Test saving with nothing loaded fails."""
        with pytest.raises(ValueError):
            ConfigManager(config_path, use_dotenv=False).save()

    def test_get(self, config_path):
        """Test reading single values."""
        manager = ConfigManager(config_path, use_dotenv=False)

        assert manager.get("default_scanner") == "detect-secrets"
        assert manager.get("missing", "fallback") == "fallback"

    def test_load_is_cached(self, config_path):
        """Test repeated loads return the same object."""
        manager = ConfigManager(config_path, use_dotenv=False)

        assert manager.load() is manager.load()
