"""
Unit tests for services layer components.
Tests configuration management and data ingestion.
"""

import pytest
import pandas as pd
import yaml
from pathlib import Path

from cur_migration_assessment.services.config import ConfigManager
from cur_migration_assessment.services.ingestion import DataIngestionService
from cur_migration_assessment.services.memory import NullMemoryMonitor
from cur_migration_assessment.services.sinks import JsonLinesRecordSink
from cur_migration_assessment.models import ParserSettings, WorkloadRecord


class TestConfigManager:
    """Test ConfigManager functionality."""

    def test_config_manager_initialization(self, sample_config_dir):
        """Test loading settings from assessment.yaml."""
        config_manager = ConfigManager(str(sample_config_dir))

        assert config_manager.config_dir == Path(sample_config_dir)
        assert config_manager.parser_settings.chunk_size_bytes == 4096
        assert config_manager.parser_settings.max_lines_per_batch == 50
        assert config_manager.parser_settings.memory_limit_mb == 4096
        assert config_manager.aggregator_settings.top_services_limit == 3
        # Unspecified values keep their defaults
        assert config_manager.parser_settings.max_line_length == 10_000_000
        assert config_manager.aggregator_settings.ready_threshold == 70.0

    def test_default_config_is_written(self, temp_dir):
        """Test that a missing assessment.yaml is created with defaults."""
        config_dir = temp_dir / "config"
        config_manager = ConfigManager(str(config_dir))

        config_file = config_dir / "global" / "assessment.yaml"
        assert config_file.exists()
        with open(config_file) as f:
            data = yaml.safe_load(f)
        assert data["parser"]["max_records"] == 2_000_000
        assert data["aggregator"]["batch_size"] == 10_000
        assert config_manager.parser_settings == ParserSettings()

    def test_environment_overrides(self, sample_config_dir, monkeypatch):
        """Test that environment variables win over the YAML file."""
        monkeypatch.setenv("CUR_MAX_RECORDS", "123")
        monkeypatch.setenv("CUR_DEFAULT_REGION", "eu-west-1")
        monkeypatch.setenv("AGGREGATOR_BATCH_SIZE", "7")
        monkeypatch.setenv("CUR_OVERFLOW_DIR", "/tmp/cur-overflow")

        config_manager = ConfigManager(str(sample_config_dir))

        assert config_manager.parser_settings.max_records == 123
        assert config_manager.parser_settings.default_region == "eu-west-1"
        assert config_manager.parser_settings.chunk_size_bytes == 4096
        assert config_manager.aggregator_settings.batch_size == 7
        assert config_manager.global_config.overflow_dir == "/tmp/cur-overflow"

    def test_invalid_environment_value(self, sample_config_dir, monkeypatch):
        """Test that unparseable overrides are reported."""
        monkeypatch.setenv("CUR_MAX_RECORDS", "lots")

        with pytest.raises(ValueError) as exc_info:
            ConfigManager(str(sample_config_dir))
        assert "CUR_MAX_RECORDS" in str(exc_info.value)

    def test_invalid_setting_in_yaml(self, temp_dir):
        """Test that out-of-range settings fail validation."""
        config_dir = temp_dir / "config"
        (config_dir / "global").mkdir(parents=True)
        with open(config_dir / "global" / "assessment.yaml", "w") as f:
            yaml.dump({"parser": {"chunk_size_bytes": 0}}, f)

        with pytest.raises(ValueError):
            ConfigManager(str(config_dir))

    def test_invalid_config_directory(self):
        """Test handling of a config directory whose parent does not exist."""
        with pytest.raises(FileNotFoundError):
            ConfigManager("/nonexistent/path/to/config")

    def test_get_status(self, sample_config_dir):
        status = ConfigManager(str(sample_config_dir)).get_status()

        assert status["config_dir"] == str(sample_config_dir)
        assert status["parser"]["chunk_size_bytes"] == 4096
        assert status["aggregator"]["top_services_limit"] == 3
        assert status["overflow_dir"] is None


class TestDataIngestionService:
    """Test DataIngestionService functionality."""

    def test_data_service_initialization(self, temp_dir):
        """Test DataIngestionService initialization."""
        data_service = DataIngestionService(str(temp_dir))

        assert data_service.data_dir == Path(temp_dir)
        assert (temp_dir / "billing").is_dir()
        assert data_service.create_overflow_sink() is None

    def test_parser_uses_service_settings(self, temp_dir):
        settings = ParserSettings(chunk_size_bytes=128)
        data_service = DataIngestionService(
            str(temp_dir), settings=settings, memory_monitor=NullMemoryMonitor()
        )

        parser = data_service.create_parser()
        assert parser.settings.chunk_size_bytes == 128
        assert isinstance(parser.memory_monitor, NullMemoryMonitor)

    def test_create_sample_data(self, temp_dir):
        """Test sample CUR creation."""
        data_service = DataIngestionService(str(temp_dir))

        path = data_service.create_sample_data(num_rows=50, seed=7)

        assert path == temp_dir / "billing" / "sample_cur.csv"
        frame = pd.read_csv(path)
        assert len(frame) == 54
        assert (frame["lineItem/ProductCode"] == "TAX").sum() == 4
        assert "lineItem/UnblendedCost" in frame.columns

    def test_sample_data_is_reproducible(self, temp_dir):
        data_service = DataIngestionService(str(temp_dir))

        first = data_service.create_sample_data(num_rows=30, seed=3, file_name="a.csv").read_bytes()
        second = data_service.create_sample_data(num_rows=30, seed=3, file_name="b.csv").read_bytes()
        assert first == second

    @pytest.mark.asyncio
    async def test_ingest_billing_data(self, temp_dir):
        """Test ingesting a CUR export from disk."""
        data_service = DataIngestionService(str(temp_dir), memory_monitor=NullMemoryMonitor())
        path = data_service.create_sample_data(num_rows=200, seed=11)

        result = await data_service.ingest_billing_data(str(path))

        assert len(result.records) > 0
        assert isinstance(result.records[0], WorkloadRecord)
        assert result.metadata.total_rows == 204
        assert result.metadata.skipped_rows.tax == 4
        assert result.metadata.skipped_rows.malformed == 0
        assert result.metadata.tax_cost > 0
        assert result.metadata.total_aggregated_cost == pytest.approx(result.metadata.total_raw_cost)

    @pytest.mark.asyncio
    async def test_ingest_bytes(self, temp_dir, make_row, make_cur):
        data_service = DataIngestionService(str(temp_dir), memory_monitor=NullMemoryMonitor())

        result = await data_service.ingest_billing_data(make_cur([make_row()]))
        assert len(result.records) == 1

    @pytest.mark.asyncio
    async def test_ingest_nonexistent_file(self, temp_dir):
        """Test ingesting data from a non-existent file."""
        data_service = DataIngestionService(str(temp_dir))

        with pytest.raises(FileNotFoundError):
            await data_service.ingest_billing_data(str(temp_dir / "missing.csv"))

    def test_overflow_sink_replaces_previous_file(self, temp_dir):
        overflow_dir = temp_dir / "overflow"
        data_service = DataIngestionService(str(temp_dir), overflow_dir=str(overflow_dir))

        overflow_dir.mkdir()
        stale = overflow_dir / "run.jsonl"
        stale.write_text('{"stale": true}\n')

        sink = data_service.create_overflow_sink("run")
        assert isinstance(sink, JsonLinesRecordSink)
        assert sink.path == stale
        assert not stale.exists()
