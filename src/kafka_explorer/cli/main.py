"""kafka-explorer CLI: command-line access to configured clusters.

Commands:
    clusters list     Show stored cluster configurations
    clusters add      Add a Kafka or AWS MSK cluster
    clusters remove   Remove a cluster and its stored secrets
    clusters check    Reconnect every stored cluster and report failures
    topics list       List topics of a cluster
    topics describe   Show partitions, watermarks and configuration
    topics create     Create a topic
    topics partitions Grow a topic's partition count
    topics delete     Delete a topic
    topics config     Show or update a topic's configuration
    produce           Produce one message
    consume           Read a bounded number of messages
    groups list       List consumer groups with their state
    groups describe   Show members and per-partition lag
    groups lag        Show per-partition lag only
    groups delete     Delete a consumer group
    groups reset      Reset a group's committed offsets
    brokers           List brokers, or show one broker's configuration
    stats             Show cluster statistics
    lag-check         Check consumer lag against the alert thresholds
    audit show        Show recent audit log entries
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import click
from pydantic import BaseModel

from kafka_explorer import __version__
from kafka_explorer.audit.log import AuditResult, read_audit_log
from kafka_explorer.config import ExplorerConfig, configure_logging, load_config
from kafka_explorer.errors import UnknownCluster, describe_error
from kafka_explorer.lag import LagMonitor
from kafka_explorer.manager import ClusterManager
from kafka_explorer.models import (
    ClusterConnection,
    ClusterType,
    OffsetResetMode,
    SaslMechanism,
    SecurityProtocol,
)

Operation = Callable[[ClusterManager], Awaitable[Any]]

_RESET_MODES = {
    "beginning": OffsetResetMode.BEGINNING,
    "end": OffsetResetMode.END,
    "specific": OffsetResetMode.SPECIFIC,
}


def _resolve_cfg(path: str | None) -> ExplorerConfig:
    """Load the config; an explicit path must exist, auto-discovery never errors."""
    if path is not None:
        try:
            return load_config(path)
        except (OSError, ValueError) as e:
            click.echo(f"Error loading config: {e}", err=True)
            sys.exit(1)
    try:
        return load_config()
    except Exception:
        return ExplorerConfig()


def _build_manager(cfg: ExplorerConfig) -> ClusterManager:
    return ClusterManager.from_config(cfg)


def _fail(exc: BaseException, context: str = "") -> None:
    report = describe_error(exc, context)
    click.echo(click.style("Error: ", fg="red", bold=True) + report.message, err=True)
    if report.suggestion:
        click.echo(f"  {report.suggestion}", err=True)
    sys.exit(1)


def _run(
    cfg: ExplorerConfig,
    operation: Operation,
    *,
    cluster: str | None = None,
    context: str = "",
) -> Any:
    """Run *operation* against a fresh manager, registering *cluster* first."""

    async def _main() -> Any:
        manager = _build_manager(cfg)
        try:
            if cluster is not None:
                await manager.load_cluster(cluster)
            return await operation(manager)
        finally:
            await manager.dispose()

    try:
        return asyncio.run(_main())
    except Exception as e:
        _fail(e, context)


def _parse_pairs(values: tuple[str, ...], option: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint=option)
        pairs[key] = value
    return pairs


def _echo_json(data: BaseModel | list[BaseModel] | dict[str, Any]) -> None:
    if isinstance(data, BaseModel):
        payload: Any = data.model_dump(mode="json")
    elif isinstance(data, list):
        payload = [item.model_dump(mode="json") for item in data]
    else:
        payload = data
    click.echo(json.dumps(payload, indent=2))


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, help="Path to kafka-explorer.yaml")
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """kafka-explorer: manage Kafka and AWS MSK cluster connections."""
    cfg = _resolve_cfg(config_path)
    configure_logging(log_level or cfg.log_level)
    ctx.obj = cfg


# --- clusters group ---


@cli.group()
def clusters() -> None:
    """Cluster configuration commands."""


@clusters.command("list")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def clusters_list(cfg: ExplorerConfig, json_output: bool) -> None:
    """Show stored cluster configurations (no connection is made)."""
    records = _build_manager(cfg).store.load()

    if json_output:
        click.echo(json.dumps(records, indent=2))
        return
    if not records:
        click.echo("No clusters configured.")
        return
    for record in records:
        kind = record.get("type", ClusterType.KAFKA.value)
        where = record.get("cluster_arn") or ",".join(record.get("brokers", []))
        click.echo(
            f"  {record.get('name', '?'):<20} "
            + click.style(f"{kind:<6}", fg="cyan")
            + f" {record.get('security_protocol', SecurityProtocol.PLAINTEXT.value):<15} {where}"
        )
    click.echo(f"\n{len(records)} cluster(s) configured.")


@clusters.command("add")
@click.argument("name")
@click.option("--broker", "brokers", multiple=True, help="Broker host:port (repeatable)")
@click.option("--msk", "is_msk", is_flag=True, help="Resolve brokers from an AWS MSK cluster")
@click.option("--region", default=None, help="AWS region of the MSK cluster")
@click.option("--cluster-arn", default=None, help="ARN of the MSK cluster")
@click.option("--aws-profile", default=None, help="AWS profile for MSK access")
@click.option("--assume-role-arn", default=None, help="Role to assume for MSK IAM auth")
@click.option(
    "--security-protocol", default=SecurityProtocol.PLAINTEXT.value,
    type=click.Choice([p.value for p in SecurityProtocol]),
)
@click.option(
    "--sasl-mechanism", default=None,
    type=click.Choice([m.value for m in SaslMechanism]),
)
@click.option("--sasl-username", default=None)
@click.option("--sasl-password", default=None, help="Kept in the secret store, never in the clusters file")
@click.option("--ssl-ca-file", default=None)
@click.option("--ssl-cert-file", default=None)
@click.option("--ssl-key-file", default=None)
@click.option("--ssl-password", default=None)
@click.option("--insecure", is_flag=True, help="Skip TLS certificate verification")
@click.pass_obj
def clusters_add(
    cfg: ExplorerConfig,
    name: str,
    brokers: tuple[str, ...],
    is_msk: bool,
    region: str | None,
    cluster_arn: str | None,
    aws_profile: str | None,
    assume_role_arn: str | None,
    security_protocol: str,
    sasl_mechanism: str | None,
    sasl_username: str | None,
    sasl_password: str | None,
    ssl_ca_file: str | None,
    ssl_cert_file: str | None,
    ssl_key_file: str | None,
    ssl_password: str | None,
    insecure: bool,
) -> None:
    """Add a cluster, connect to it and save it."""
    connection = ClusterConnection(
        name=name,
        type=ClusterType.MSK if is_msk else ClusterType.KAFKA,
        brokers=list(brokers),
        security_protocol=SecurityProtocol(security_protocol),
        sasl_mechanism=SaslMechanism(sasl_mechanism) if sasl_mechanism else None,
        sasl_username=sasl_username,
        sasl_password=sasl_password,
        ssl_ca_file=ssl_ca_file,
        ssl_cert_file=ssl_cert_file,
        ssl_key_file=ssl_key_file,
        ssl_password=ssl_password,
        reject_unauthorized=not insecure,
        region=region,
        cluster_arn=cluster_arn,
        aws_profile=aws_profile,
        assume_role_arn=assume_role_arn,
    )

    async def _add(manager: ClusterManager) -> tuple[list[str], str | None]:
        await manager.add_cluster_from_connection(connection)
        secrets = manager.secrets
        env_base = None if secrets.persistent else secrets.env_var_base(name)
        return manager.registry.settings(name).brokers, env_base

    resolved, env_base = _run(cfg, _add, context="adding cluster")
    click.echo(click.style("ADDED", fg="green", bold=True) + f" {name}")
    click.echo(f"  brokers: {', '.join(resolved)}")
    if env_base is not None:
        missing = [
            f"{env_base}_{kind}_PASSWORD"
            for kind, given in (("SASL", sasl_password), ("SSL", ssl_password))
            if given
        ]
        if missing:
            click.echo(
                click.style("NOTE", fg="yellow", bold=True)
                + " the memory secret store keeps passwords for this run only. "
                + f"Set {' and '.join(missing)} for later commands, "
                + "or use 'secrets: {type: keyring}' in kafka-explorer.yaml.",
                err=True,
            )


@clusters.command("remove")
@click.argument("name")
@click.pass_obj
def clusters_remove(cfg: ExplorerConfig, name: str) -> None:
    """Remove a cluster and its stored secrets."""

    async def _remove(manager: ClusterManager) -> None:
        if not any(r.get("name") == name for r in manager.store.load()):
            raise UnknownCluster(name)
        await manager.remove_cluster(name)

    _run(cfg, _remove, context="removing cluster")
    click.echo(click.style("REMOVED", fg="yellow", bold=True) + f" {name}")


@clusters.command("check")
@click.option("--remove-failed", is_flag=True, help="Drop clusters that fail to reconnect")
@click.pass_obj
def clusters_check(cfg: ExplorerConfig, remove_failed: bool) -> None:
    """Reconnect every stored cluster and report failures."""

    async def _check(manager: ClusterManager) -> tuple[Any, list[str]]:
        report = await manager.load_configuration()
        removed = manager.remove_failed(report) if remove_failed and report.failures else []
        return report, removed

    report, removed = _run(cfg, _check, context="loading clusters")
    for name in report.loaded:
        click.echo(click.style("  OK    ", fg="green") + f" {name}")
    for failure in report.failures:
        click.echo(
            click.style("  FAIL  ", fg="red")
            + f" {failure.name:<20} {failure.reason.value:<20} {failure.detail}"
        )
    if removed:
        click.echo(f"\nRemoved {len(removed)} failed cluster(s): {', '.join(removed)}")
    click.echo(f"\n{report.summary()}")
    if report.failures and not removed:
        sys.exit(1)


# --- topics group ---


@cli.group()
def topics() -> None:
    """Topic commands."""


@topics.command("list")
@click.argument("cluster")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def topics_list(cfg: ExplorerConfig, cluster: str, json_output: bool) -> None:
    """List topics of a cluster."""
    names = _run(cfg, lambda m: m.list_topics(cluster), cluster=cluster, context="listing topics")
    names = sorted(names)
    if json_output:
        click.echo(json.dumps(names, indent=2))
        return
    for name in names:
        click.echo(f"  {name}")
    click.echo(f"\n{len(names)} topic(s).")


@topics.command("describe")
@click.argument("cluster")
@click.argument("topic")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def topics_describe(cfg: ExplorerConfig, cluster: str, topic: str, json_output: bool) -> None:
    """Show partitions, watermarks and configuration of a topic."""
    details = _run(
        cfg, lambda m: m.get_topic_details(cluster, topic),
        cluster=cluster, context="describing topic",
    )
    if json_output:
        _echo_json(details)
        return
    click.echo(click.style(details.name, bold=True))
    click.echo(f"  partitions:         {details.partitions}")
    click.echo(f"  replication factor: {details.replication_factor}")
    for p in details.partition_details:
        click.echo(
            f"  [{p.partition}] leader={p.leader} replicas={p.replicas} isr={p.isr}"
            f" offsets={p.low_watermark}..{p.high_watermark} messages={p.message_count}"
        )
    overrides = [c for c in details.configuration if not c.is_default]
    if overrides:
        click.echo("  config:")
        for entry in overrides:
            click.echo(f"    {entry.name}={'******' if entry.is_sensitive else entry.value}")


@topics.command("create")
@click.argument("cluster")
@click.argument("topic")
@click.option("--partitions", default=1, type=click.IntRange(min=1), help="Number of partitions")
@click.option("--replication-factor", default=1, type=click.IntRange(min=1))
@click.option("--config", "configs", multiple=True, help="Topic config KEY=VALUE (repeatable)")
@click.pass_obj
def topics_create(
    cfg: ExplorerConfig,
    cluster: str,
    topic: str,
    partitions: int,
    replication_factor: int,
    configs: tuple[str, ...],
) -> None:
    """Create a topic."""
    parsed = _parse_pairs(configs, "--config")
    _run(
        cfg, lambda m: m.create_topic(cluster, topic, partitions, replication_factor, parsed),
        cluster=cluster, context="creating topic",
    )
    click.echo(click.style("CREATED", fg="green", bold=True) + f" {topic} ({partitions} partition(s))")


@topics.command("partitions")
@click.argument("cluster")
@click.argument("topic")
@click.argument("total", type=click.IntRange(min=1))
@click.pass_obj
def topics_partitions(cfg: ExplorerConfig, cluster: str, topic: str, total: int) -> None:
    """Grow a topic to TOTAL partitions (partitions cannot be removed)."""
    previous = _run(
        cfg, lambda m: m.add_partitions(cluster, topic, total),
        cluster=cluster, context="adding partitions",
    )
    click.echo(click.style("UPDATED", fg="green", bold=True) + f" {topic}: {previous} -> {total} partitions")


@topics.command("delete")
@click.argument("cluster")
@click.argument("topic")
@click.confirmation_option(prompt="Delete this topic and all its messages?")
@click.pass_obj
def topics_delete(cfg: ExplorerConfig, cluster: str, topic: str) -> None:
    """Delete a topic."""
    _run(cfg, lambda m: m.delete_topic(cluster, topic), cluster=cluster, context="deleting topic")
    click.echo(click.style("DELETED", fg="yellow", bold=True) + f" {topic}")


@topics.command("config")
@click.argument("cluster")
@click.argument("topic")
@click.option("--set", "updates", multiple=True, help="Config KEY=VALUE to change (repeatable)")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def topics_config(
    cfg: ExplorerConfig,
    cluster: str,
    topic: str,
    updates: tuple[str, ...],
    json_output: bool,
) -> None:
    """Show a topic's configuration, or change it with --set."""
    if updates:
        parsed = _parse_pairs(updates, "--set")
        _run(
            cfg, lambda m: m.alter_topic_config(cluster, topic, parsed),
            cluster=cluster, context="updating topic config",
        )
        click.echo(click.style("UPDATED", fg="green", bold=True) + f" {topic}: {', '.join(sorted(parsed))}")
        return

    entries = _run(
        cfg, lambda m: m.get_topic_config(cluster, topic),
        cluster=cluster, context="reading topic config",
    )
    if json_output:
        _echo_json(entries)
        return
    for entry in entries:
        value = "******" if entry.is_sensitive else entry.value
        marker = "" if entry.is_default else click.style(" (override)", fg="cyan")
        click.echo(f"  {entry.name}={value}{marker}")


# --- messages ---


@cli.command()
@click.argument("cluster")
@click.argument("topic")
@click.argument("value")
@click.option("--key", default=None, help="Message key")
@click.option("--header", "headers", multiple=True, help="Header KEY=VALUE (repeatable)")
@click.option("--partition", default=None, type=int, help="Target partition")
@click.pass_obj
def produce(
    cfg: ExplorerConfig,
    cluster: str,
    topic: str,
    value: str,
    key: str | None,
    headers: tuple[str, ...],
    partition: int | None,
) -> None:
    """Produce one message to a topic."""
    parsed = _parse_pairs(headers, "--header")
    _run(
        cfg, lambda m: m.produce_message(cluster, topic, value, key, parsed, partition),
        cluster=cluster, context="producing message",
    )
    click.echo(click.style("SENT", fg="green", bold=True) + f" 1 message to {topic}")


@cli.command()
@click.argument("cluster")
@click.argument("topic")
@click.option("--limit", default=100, type=click.IntRange(min=1), help="Stop after N messages")
@click.option("--from-beginning", is_flag=True, help="Start from the earliest offset")
@click.option("--timeout", default=None, type=float, help="Give up after N seconds")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def consume(
    cfg: ExplorerConfig,
    cluster: str,
    topic: str,
    limit: int,
    from_beginning: bool,
    timeout: float | None,
    json_output: bool,
) -> None:
    """Read up to --limit messages from a topic."""
    messages = _run(
        cfg,
        lambda m: m.consume_messages(cluster, topic, limit, from_beginning, timeout),
        cluster=cluster,
        context="consuming messages",
    )
    if json_output:
        _echo_json(messages)
        return
    for msg in messages:
        key = f" key={msg.key}" if msg.key is not None else ""
        click.echo(
            click.style(f"  [{msg.partition}:{msg.offset}]", fg="cyan") + f"{key} {msg.value}"
        )
    click.echo(f"\n{len(messages)} message(s) consumed.")


# --- groups group ---


@cli.group()
def groups() -> None:
    """Consumer group commands."""


@groups.command("list")
@click.argument("cluster")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def groups_list(cfg: ExplorerConfig, cluster: str, json_output: bool) -> None:
    """List consumer groups with their state."""
    summaries = _run(
        cfg, lambda m: m.list_consumer_groups(cluster),
        cluster=cluster, context="listing consumer groups",
    )
    if json_output:
        _echo_json(summaries)
        return
    for group in summaries:
        click.echo(f"  {group.group_id:<40} {group.state}")
    click.echo(f"\n{len(summaries)} group(s).")


@groups.command("describe")
@click.argument("cluster")
@click.argument("group_id")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def groups_describe(cfg: ExplorerConfig, cluster: str, group_id: str, json_output: bool) -> None:
    """Show members and per-partition lag of a group."""
    details = _run(
        cfg, lambda m: m.get_consumer_group_details(cluster, group_id),
        cluster=cluster, context="describing consumer group",
    )
    if json_output:
        _echo_json(details)
        return
    click.echo(click.style(details.group_id, bold=True) + f" ({details.state})")
    click.echo(f"  members: {len(details.members)}")
    for member in details.members:
        click.echo(f"    {member.member_id} {member.client_id}@{member.client_host}")
    for lag in details.offsets:
        click.echo(
            f"  {lag.topic}[{lag.partition}] offset={lag.current_offset}"
            f" end={lag.high_watermark} lag={lag.lag}"
        )
    click.echo(f"\ntotal lag: {details.total_lag:,}")


@groups.command("lag")
@click.argument("cluster")
@click.argument("group_id")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def groups_lag(cfg: ExplorerConfig, cluster: str, group_id: str, json_output: bool) -> None:
    """Show per-partition lag of a group."""
    lags = _run(
        cfg, lambda m: m.get_consumer_group_lag(cluster, group_id),
        cluster=cluster, context="reading consumer group lag",
    )
    if json_output:
        _echo_json(lags)
        return
    for lag in lags:
        click.echo(
            f"  {lag.topic:<30} {lag.partition:>4} {lag.current_offset:>12}"
            f" {lag.high_watermark:>12} {lag.lag:>10}"
        )
    click.echo(f"\ntotal lag: {sum(lag.lag for lag in lags):,}")


@groups.command("delete")
@click.argument("cluster")
@click.argument("group_id")
@click.confirmation_option(prompt="Delete this consumer group?")
@click.pass_obj
def groups_delete(cfg: ExplorerConfig, cluster: str, group_id: str) -> None:
    """Delete a consumer group."""
    _run(
        cfg, lambda m: m.delete_consumer_group(cluster, group_id),
        cluster=cluster, context="deleting consumer group",
    )
    click.echo(click.style("DELETED", fg="yellow", bold=True) + f" {group_id}")


@groups.command("reset")
@click.argument("cluster")
@click.argument("group_id")
@click.option("--topic", default=None, help="Only this topic (default: every committed topic)")
@click.option("--to", "reset_to", default="beginning", type=click.Choice(sorted(_RESET_MODES)))
@click.option("--offset", default=None, type=int, help="Offset for --to specific")
@click.pass_obj
def groups_reset(
    cfg: ExplorerConfig,
    cluster: str,
    group_id: str,
    topic: str | None,
    reset_to: str,
    offset: int | None,
) -> None:
    """Reset a group's committed offsets."""
    mode = _RESET_MODES[reset_to]
    applied = _run(
        cfg,
        lambda m: m.reset_consumer_group_offsets(cluster, group_id, topic, mode, offset),
        cluster=cluster,
        context="resetting offsets",
    )
    for name, offsets in applied.items():
        positions = ", ".join(f"{p}:{o}" for p, o in sorted(offsets.items()))
        click.echo(f"  {name} -> {positions}")
    click.echo(f"\nReset {len(applied)} topic(s) for {group_id}.")


# --- brokers / stats ---


@cli.command()
@click.argument("cluster")
@click.option("--broker-id", default=None, type=int, help="Show one broker's configuration")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def brokers(cfg: ExplorerConfig, cluster: str, broker_id: int | None, json_output: bool) -> None:
    """List brokers, or show one broker's configuration."""
    if broker_id is not None:
        details = _run(
            cfg, lambda m: m.get_broker_details(cluster, broker_id),
            cluster=cluster, context="describing broker",
        )
        if json_output:
            _echo_json(details)
            return
        click.echo(click.style(f"broker {details.node_id}", bold=True) + f" {details.host}:{details.port}")
        for entry in details.configuration:
            click.echo(f"  {entry.name}={'******' if entry.is_sensitive else entry.value}")
        return

    listing = _run(cfg, lambda m: m.get_brokers(cluster), cluster=cluster, context="listing brokers")
    if json_output:
        _echo_json(listing)
        return
    for broker in listing:
        rack = f" rack={broker.rack}" if broker.rack else ""
        click.echo(f"  {broker.node_id:<6} {broker.host}:{broker.port}{rack}")
    click.echo(f"\n{len(listing)} broker(s).")


@cli.command()
@click.argument("cluster")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def stats(cfg: ExplorerConfig, cluster: str, json_output: bool) -> None:
    """Show broker, topic and partition counts."""
    result = _run(
        cfg, lambda m: m.get_cluster_statistics(cluster),
        cluster=cluster, context="reading cluster statistics",
    )
    if json_output:
        _echo_json(result)
        return
    click.echo(f"  cluster id: {result.cluster_id or '-'}")
    click.echo(f"  controller: {result.controller if result.controller is not None else '-'}")
    click.echo(f"  brokers:    {result.broker_count}")
    click.echo(f"  topics:     {result.topic_count}")
    click.echo(f"  partitions: {result.total_partitions}")


@cli.command("lag-check")
@click.option("--warning", "warning_threshold", default=None, type=int, help="Warning threshold")
@click.option("--critical", "critical_threshold", default=None, type=int, help="Critical threshold")
@click.pass_obj
def lag_check(
    cfg: ExplorerConfig,
    warning_threshold: int | None,
    critical_threshold: int | None,
) -> None:
    """Check consumer lag of every stored cluster once."""
    settings = cfg.lag_alerts
    overrides: dict[str, int] = {}
    if warning_threshold is not None:
        overrides["warning_threshold"] = warning_threshold
    if critical_threshold is not None:
        overrides["critical_threshold"] = critical_threshold
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    async def _check(manager: ClusterManager) -> list[Any]:
        report = await manager.load_configuration()
        for failure in report.failures:
            click.echo(f"  skipped {failure.name}: {failure.reason.value}", err=True)
        return await LagMonitor(manager, settings).check_all()

    summaries = _run(cfg, _check, context="checking lag")
    if not summaries:
        click.echo(click.style("OK", fg="green", bold=True) + " no consumer group over threshold")
        return
    for summary in summaries:
        color = "red" if summary.critical else "yellow"
        click.echo(click.style(summary.message(), fg=color))
    if any(s.critical for s in summaries):
        sys.exit(2)


# --- audit group ---


@cli.group()
def audit() -> None:
    """Audit log commands."""


@audit.command("show")
@click.argument("log_file", required=False)
@click.option("--last", "count", default=20, help="Number of entries to show")
@click.option("--cluster", default=None, help="Only entries for this cluster")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def audit_show(
    cfg: ExplorerConfig,
    log_file: str | None,
    count: int,
    cluster: str | None,
    json_output: bool,
) -> None:
    """Show recent audit log entries (newest first)."""
    path = log_file or cfg.audit_log
    if path is None:
        click.echo("No audit log configured; set audit_log in kafka-explorer.yaml.", err=True)
        sys.exit(1)
    if not Path(path).exists():
        click.echo(f"Audit log not found: {path}", err=True)
        sys.exit(1)

    entries = read_audit_log(path)
    if cluster is not None:
        entries = [e for e in entries if e.cluster == cluster]
    entries = entries[:count]

    if json_output:
        _echo_json(entries)
        return
    if not entries:
        click.echo("No audit entries found.")
        return
    for entry in entries:
        color = "green" if entry.result == AuditResult.SUCCESS else "red"
        resource = f" {entry.resource}" if entry.resource else ""
        click.echo(
            f"  {entry.timestamp.isoformat()[:19]}  "
            + click.style(f"{entry.result.value:<8}", fg=color)
            + f" {entry.operation.value:<30} {entry.cluster}{resource}"
        )
        if entry.error:
            click.echo(f"      {entry.error}")
    click.echo(f"\n{len(entries)} entry(ies) shown.")
