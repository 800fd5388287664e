"""Tests for the kafka-explorer CLI."""

import json
from dataclasses import dataclass
from pathlib import Path

import pytest
from click.testing import CliRunner
from conftest import FakeKafka, make_message

from kafka_explorer import __version__
from kafka_explorer.audit.log import AuditLog
from kafka_explorer.cli.main import cli
from kafka_explorer.config import ExplorerConfig
from kafka_explorer.credentials.keyring_store import KeyringSecretStore
from kafka_explorer.credentials.memory_store import InMemorySecretStore
from kafka_explorer.manager import ClusterManager
from kafka_explorer.models import GroupDescription, GroupMember, GroupOffset
from kafka_explorer.store import MemoryClusterStore

LOCAL_RECORD = {"name": "local", "type": "kafka", "brokers": ["localhost:9092"], "security_protocol": "PLAINTEXT"}


@dataclass
class CliEnv:
    store: MemoryClusterStore
    kafka: FakeKafka
    config_file: Path

    def invoke(self, *args: str, input: str | None = None):
        return CliRunner().invoke(cli, ["--config", str(self.config_file), *args], input=input)


@pytest.fixture()
def env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CliEnv:
    store = MemoryClusterStore()
    kafka = FakeKafka()
    secrets = InMemorySecretStore(env_prefix="KAFKA_EXPLORER_TEST_SECRET_")
    config_file = tmp_path / "kafka-explorer.yaml"
    config_file.write_text(
        "audit_log: audit.jsonl\nconsume_timeout_seconds: 0.2\n",
        encoding="utf-8",
    )

    def build(cfg: ExplorerConfig) -> ClusterManager:
        return ClusterManager(
            store=store,
            secrets=secrets,
            wire_factory=kafka,
            audit=AuditLog(log_path=cfg.audit_log),
            config=cfg,
        )

    monkeypatch.setattr("kafka_explorer.cli.main._build_manager", build)
    return CliEnv(store, kafka, config_file)


@pytest.fixture()
def local(env: CliEnv):
    env.store.save([dict(LOCAL_RECORD)])
    cluster = env.kafka.cluster("local")
    cluster.add_topic("orders", [(0, 10), (0, 5)])
    cluster.add_topic("payments", [(0, 3)])
    return cluster


# --- root ---


class TestRoot:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_explicit_config(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "clusters", "list"])
        assert result.exit_code == 1
        assert "Error loading config" in result.output


# --- clusters ---


class TestClustersCommands:
    def test_list_empty(self, env: CliEnv):
        result = env.invoke("clusters", "list")
        assert result.exit_code == 0
        assert "No clusters configured." in result.output

    def test_add_and_list(self, env: CliEnv):
        result = env.invoke("clusters", "add", "local", "--broker", "localhost:9092")
        assert result.exit_code == 0, result.output
        assert "ADDED local" in result.output
        assert "brokers: localhost:9092" in result.output
        assert env.store.load() == [LOCAL_RECORD]

        listed = env.invoke("clusters", "list")
        assert "local" in listed.output
        assert "1 cluster(s) configured." in listed.output

    def test_list_json(self, env: CliEnv, local):
        result = env.invoke("clusters", "list", "--json-output")
        assert json.loads(result.output) == [LOCAL_RECORD]

    def test_add_keeps_password_out_of_store(self, env: CliEnv):
        result = env.invoke(
            "clusters", "add", "scram", "--broker", "b:9096",
            "--security-protocol", "SASL_PLAINTEXT",
            "--sasl-mechanism", "SCRAM-SHA-256",
            "--sasl-username", "alice", "--sasl-password", "hunter2",
        )
        assert result.exit_code == 0, result.output
        assert "hunter2" not in json.dumps(env.store.load())
        assert env.kafka.settings["scram"].sasl_password == "hunter2"
        assert "KAFKA_EXPLORER_TEST_SECRET_SCRAM_SASL_PASSWORD" in result.output

    def test_add_with_keyring_store(self, env: CliEnv, memory_keyring, monkeypatch: pytest.MonkeyPatch):
        def build(cfg: ExplorerConfig) -> ClusterManager:
            return ClusterManager(
                store=env.store,
                secrets=KeyringSecretStore(service="ke-test"),
                wire_factory=env.kafka,
                audit=AuditLog(),
                config=cfg,
            )

        monkeypatch.setattr("kafka_explorer.cli.main._build_manager", build)
        result = env.invoke(
            "clusters", "add", "scram", "--broker", "b:9096",
            "--security-protocol", "SASL_PLAINTEXT",
            "--sasl-mechanism", "SCRAM-SHA-256",
            "--sasl-username", "alice", "--sasl-password", "hunter2",
        )

        assert result.exit_code == 0, result.output
        assert "NOTE" not in result.output
        assert ("ke-test", "scram") in memory_keyring.entries

        del env.kafka.settings["scram"]
        listed = env.invoke("topics", "list", "scram")
        assert listed.exit_code == 0, listed.output
        assert env.kafka.settings["scram"].sasl_password == "hunter2"

    def test_add_invalid_msk(self, env: CliEnv):
        result = env.invoke("clusters", "add", "prod", "--msk", "--cluster-arn", "arn:aws:kafka:x")
        assert result.exit_code == 1
        assert "MSK clusters require a region" in result.output
        assert env.store.load() == []

    def test_remove(self, env: CliEnv, local):
        result = env.invoke("clusters", "remove", "local")
        assert result.exit_code == 0
        assert "REMOVED local" in result.output
        assert env.store.load() == []

    def test_remove_unknown(self, env: CliEnv):
        result = env.invoke("clusters", "remove", "nope")
        assert result.exit_code == 1
        assert "Cluster nope not found" in result.output

    def test_check_reports_failures(self, env: CliEnv, local):
        env.store.save([dict(LOCAL_RECORD), {"name": "broken", "type": "msk"}])

        result = env.invoke("clusters", "check")

        assert result.exit_code == 1
        assert "OK" in result.output
        assert "broken" in result.output
        assert "invalid_config" in result.output

    def test_check_remove_failed(self, env: CliEnv, local):
        env.store.save([dict(LOCAL_RECORD), {"name": "broken", "type": "msk"}])

        result = env.invoke("clusters", "check", "--remove-failed")

        assert result.exit_code == 0
        assert "Removed 1 failed cluster(s): broken" in result.output
        assert [r["name"] for r in env.store.load()] == ["local"]


# --- topics ---


class TestTopicsCommands:
    def test_list(self, env: CliEnv, local):
        result = env.invoke("topics", "list", "local")
        assert result.exit_code == 0, result.output
        assert "orders" in result.output
        assert "2 topic(s)." in result.output

    def test_list_json(self, env: CliEnv, local):
        result = env.invoke("topics", "list", "local", "--json-output")
        assert json.loads(result.output) == ["orders", "payments"]

    def test_unknown_cluster(self, env: CliEnv):
        result = env.invoke("topics", "list", "nope")
        assert result.exit_code == 1
        assert "Cluster nope not found" in result.output

    def test_describe(self, env: CliEnv, local):
        result = env.invoke("topics", "describe", "local", "orders")
        assert result.exit_code == 0, result.output
        assert "partitions:         2" in result.output
        assert "offsets=0..10 messages=10" in result.output

    def test_describe_missing_topic(self, env: CliEnv, local):
        result = env.invoke("topics", "describe", "local", "ghost")
        assert result.exit_code == 1
        assert "Topic or consumer group not found: ghost" in result.output

    def test_create(self, env: CliEnv, local):
        result = env.invoke(
            "topics", "create", "local", "audit-events",
            "--partitions", "3", "--config", "retention.ms=1000",
        )
        assert result.exit_code == 0, result.output
        assert "CREATED audit-events (3 partition(s))" in result.output
        assert len(local.topics["audit-events"]) == 3
        assert local.configs["audit-events"] == {"retention.ms": "1000"}

    def test_create_bad_config_pair(self, env: CliEnv, local):
        result = env.invoke("topics", "create", "local", "x", "--config", "oops")
        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_partitions(self, env: CliEnv, local):
        result = env.invoke("topics", "partitions", "local", "orders", "5")
        assert result.exit_code == 0, result.output
        assert "UPDATED orders: 2 -> 5 partitions" in result.output
        assert len(local.topics["orders"]) == 5

    def test_partitions_cannot_shrink(self, env: CliEnv, local):
        result = env.invoke("topics", "partitions", "local", "orders", "1")
        assert result.exit_code == 1
        assert "must be greater than the current count (2)" in result.output
        assert len(local.topics["orders"]) == 2

    def test_delete_requires_confirmation(self, env: CliEnv, local):
        result = env.invoke("topics", "delete", "local", "orders", input="n\n")
        assert result.exit_code == 1
        assert "orders" in local.topics

    def test_delete(self, env: CliEnv, local):
        result = env.invoke("topics", "delete", "local", "orders", "--yes")
        assert result.exit_code == 0, result.output
        assert "DELETED orders" in result.output
        assert "orders" not in local.topics

    def test_config_show_and_set(self, env: CliEnv, local):
        result = env.invoke("topics", "config", "local", "orders", "--set", "retention.ms=60000")
        assert result.exit_code == 0, result.output
        assert "UPDATED orders: retention.ms" in result.output

        shown = env.invoke("topics", "config", "local", "orders")
        assert "retention.ms=60000" in shown.output
        assert "cleanup.policy=delete" in shown.output


# --- messages ---


class TestMessageCommands:
    def test_produce(self, env: CliEnv, local):
        result = env.invoke(
            "produce", "local", "orders", '{"id": 1}',
            "--key", "k1", "--header", "source=cli", "--partition", "1",
        )
        assert result.exit_code == 0, result.output
        assert "SENT 1 message to orders" in result.output
        topic, record = local.produced[0]
        assert topic == "orders"
        assert record.key == "k1"
        assert record.headers == {"source": "cli"}
        assert record.partition == 1

    def test_consume(self, env: CliEnv, local):
        local.messages["orders"] = [make_message("orders", i, f"m{i}") for i in range(3)]

        result = env.invoke("consume", "local", "orders", "--limit", "2", "--from-beginning")

        assert result.exit_code == 0, result.output
        assert "[0:0]" in result.output
        assert "m1" in result.output
        assert "m2" not in result.output
        assert "2 message(s) consumed." in result.output

    def test_consume_json(self, env: CliEnv, local):
        local.messages["orders"] = [make_message("orders", 0, "hello")]
        result = env.invoke("consume", "local", "orders", "--limit", "1", "--json-output")
        assert json.loads(result.output)[0]["value"] == "hello"


# --- groups ---


@pytest.fixture()
def groups(local):
    local.groups["billing"] = GroupDescription(group_id="billing", state="Empty", protocol_type="consumer")
    local.groups["live"] = GroupDescription(
        group_id="live",
        state="Stable",
        members=[GroupMember(member_id="m-1", client_id="app", client_host="/10.0.0.1")],
    )
    local.committed["billing"] = [GroupOffset(topic="orders", partition=0, offset=4)]
    return local


class TestGroupCommands:
    def test_list(self, env: CliEnv, groups):
        result = env.invoke("groups", "list", "local")
        assert result.exit_code == 0, result.output
        assert "billing" in result.output
        assert "Stable" in result.output
        assert "2 group(s)." in result.output

    def test_describe(self, env: CliEnv, groups):
        result = env.invoke("groups", "describe", "local", "billing")
        assert result.exit_code == 0, result.output
        assert "orders[0] offset=4 end=10 lag=6" in result.output
        assert "total lag: 6" in result.output

    def test_lag_json(self, env: CliEnv, groups):
        result = env.invoke("groups", "lag", "local", "billing", "--json-output")
        assert result.exit_code == 0, result.output
        lags = json.loads(result.output)
        assert [(p["topic"], p["partition"], p["lag"]) for p in lags] == [("orders", 0, 6)]

    def test_delete_with_members(self, env: CliEnv, groups):
        result = env.invoke("groups", "delete", "local", "live", "--yes")
        assert result.exit_code == 1
        assert "still has active members" in result.output

    def test_delete(self, env: CliEnv, groups):
        result = env.invoke("groups", "delete", "local", "billing", "--yes")
        assert result.exit_code == 0, result.output
        assert "billing" not in groups.groups

    def test_reset_to_end(self, env: CliEnv, groups):
        result = env.invoke("groups", "reset", "local", "billing", "--topic", "orders", "--to", "end")
        assert result.exit_code == 0, result.output
        assert "orders -> 0:10, 1:5" in result.output
        assert "Reset 1 topic(s) for billing." in result.output
        assert groups.resets == [("billing", "orders", {0: 10, 1: 5})]

    def test_reset_specific(self, env: CliEnv, groups):
        result = env.invoke("groups", "reset", "local", "billing", "--to", "specific", "--offset", "2")
        assert result.exit_code == 0, result.output
        assert groups.resets == [("billing", "orders", {0: 2, 1: 2})]


# --- brokers / stats ---


class TestClusterInfoCommands:
    def test_brokers(self, env: CliEnv, local):
        result = env.invoke("brokers", "local")
        assert result.exit_code == 0, result.output
        assert "localhost:9092" in result.output
        assert "1 broker(s)." in result.output

    def test_broker_details(self, env: CliEnv, local):
        result = env.invoke("brokers", "local", "--broker-id", "1")
        assert result.exit_code == 0, result.output
        assert "log.retention.hours=168" in result.output

    def test_unknown_broker(self, env: CliEnv, local):
        result = env.invoke("brokers", "local", "--broker-id", "9")
        assert result.exit_code == 1
        assert "Broker 9 not found" in result.output

    def test_stats_json(self, env: CliEnv, local):
        result = env.invoke("stats", "local", "--json-output")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["topic_count"] == 2
        assert data["total_partitions"] == 3
        assert data["broker_count"] == 1


# --- lag-check ---


class TestLagCheck:
    def test_all_clear(self, env: CliEnv, groups):
        result = env.invoke("lag-check")
        assert result.exit_code == 0, result.output
        assert "no consumer group over threshold" in result.output

    def test_critical_lag_exits_2(self, env: CliEnv, groups):
        result = env.invoke("lag-check", "--warning", "2", "--critical", "5")
        assert result.exit_code == 2
        assert "Consumer lag alert for cluster local" in result.output
        assert "billing: 6 messages" in result.output

    def test_warning_only(self, env: CliEnv, groups):
        result = env.invoke("lag-check", "--warning", "2", "--critical", "100")
        assert result.exit_code == 0
        assert "Warning (1 groups):" in result.output


# --- audit ---


class TestAuditShow:
    def test_show_entries(self, env: CliEnv, local):
        env.invoke("topics", "create", "local", "audit-events")

        result = env.invoke("audit", "show")

        assert result.exit_code == 0, result.output
        assert "TOPIC_CREATED" in result.output
        assert "entry(ies) shown." in result.output

    def test_show_json_filtered(self, env: CliEnv, local):
        env.invoke("topics", "create", "local", "audit-events")
        log_file = env.config_file.parent / "audit.jsonl"

        result = env.invoke("audit", "show", str(log_file), "--cluster", "local", "--last", "1", "--json-output")

        entries = json.loads(result.output)
        assert len(entries) == 1
        assert entries[0]["operation"] == "TOPIC_CREATED"
        assert entries[0]["resource"] == "audit-events"

    def test_missing_log(self, env: CliEnv):
        result = env.invoke("audit", "show")
        assert result.exit_code == 1
        assert "Audit log not found" in result.output

    def test_no_log_configured(self, tmp_path: Path):
        config_file = tmp_path / "kafka-explorer.yaml"
        config_file.write_text("log_level: error\n", encoding="utf-8")
        result = CliRunner().invoke(cli, ["--config", str(config_file), "audit", "show"])
        assert result.exit_code == 1
        assert "No audit log configured" in result.output
