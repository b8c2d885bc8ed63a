"""
Tests for the command line entry point.
"""

import json
from typing import Any, Dict

import pytest

from pidao_monitoring import config as config_module
from pidao_monitoring.cli import create_parser, load_config, run_benchmark, run_once
from pidao_monitoring.collectors import SamplerRegistry
from pidao_monitoring.config import MonitoringConfig, get_config
from pidao_monitoring.health import ServiceProbe
from pidao_monitoring.service import MonitoringRuntime


class OkProbe(ServiceProbe):
    name = "solana"

    async def probe(self) -> Dict[str, Any]:
        return {"slot": 1}


@pytest.fixture
def runtime(store, fanout, clock):
    values = {
        "ledger.throughput": 1500.0,
        "ledger.block_interval": 400.0,
        "application.request_latency": 80.0,
        "application.error_rate": 0.0,
        "contract.gas_usage": 6_000_000.0,
        "contract.failure_rate": 0.0,
    }
    registry = SamplerRegistry()
    for path in values:
        async def sampler(path=path):
            return values[path]
        registry.register(path, sampler)
    return MonitoringRuntime(store, fanout, registry, [OkProbe()], clock=clock)


class TestParser:
    """Tests for create_parser."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        args = create_parser().parse_args([])

        assert args.config is None
        assert not args.once
        assert args.benchmark is None
        assert args.log_level == "INFO"

    def test_options(self):
        args = create_parser().parse_args([
            "-c", "monitoring.yaml", "--once", "--benchmark", "network-performance",
            "--log-level", "DEBUG",
        ])

        assert args.config == "monitoring.yaml"
        assert args.once
        assert args.benchmark == "network-performance"
        assert args.log_level == "DEBUG"

    def test_rejects_unknown_log_level(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--log-level", "VERBOSE"])


class TestLoadConfig:
    """Tests for load_config."""

    def test_yaml_config_becomes_global(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_module, "_default_config", None)
        path = tmp_path / "monitoring.yaml"
        path.write_text("store:\n  backend: memory\n")
        args = create_parser().parse_args(["--config", str(path)])

        config = load_config(args)

        assert isinstance(config, MonitoringConfig)
        assert config.store.backend == "memory"
        assert get_config() is config


class TestRunModes:
    """Tests for the one-shot run modes."""

    @pytest.mark.asyncio
    async def test_run_once_prints_snapshot_and_health(self, runtime, capsys):
        exit_code = await run_once(runtime)

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["metrics"]["ledger"]["throughput"] == 1500.0
        assert output["health"]["overall"] == "healthy"

    @pytest.mark.asyncio
    async def test_run_benchmark_exit_code_reflects_status(self, runtime, capsys):
        assert await run_benchmark(runtime, "application-performance") == 0
        assert await run_benchmark(runtime, "contract-performance") == 1

        assert "Smart Contract Performance benchmark failed." in capsys.readouterr().out
