#!/usr/bin/env python3
"""Tests for chart_opr/executor.py - apply and delete lifecycles."""

import io
import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from kubernetes.client.exceptions import ApiException

from chart import build_chart, load_chart
from chart_opr.applier import Applier
from chart_opr.executor import ChartExecutor
from chart_opr.pruner import ResourcePruner
from config import DriverConfig
from fakes import complete_status, make_job
from kube.client import WatchEvent
from kube.objects import PVC_GVR
from printers import ResourcePrinter


@pytest.fixture
def config(monkeypatch):
    monkeypatch.delenv('CHART_DRIVER_NAMESPACE', raising=False)
    monkeypatch.delenv('CHART_DRIVER_CONTEXT', raising=False)
    return DriverConfig(hook_wait_timeout=0.3, deletion_wait_timeout=5)


def lines(out):
    return out.getvalue().splitlines()


class TestApplier:
    """Test Applier."""

    def test_created_then_configured(self, fake_client):
        out = io.StringIO()
        cm = {'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'cfg', 'namespace': 'default'}}
        applier = Applier(fake_client, printer=ResourcePrinter(out=out), field_manager='ci')

        applier.apply([cm])
        applier.apply([cm])

        assert lines(out) == ['configmap/cfg created', 'configmap/cfg configured']
        assert [a[0] for a in fake_client.actions] == ['resource_for', 'get', 'apply'] * 2

    def test_dry_run_does_not_apply(self, fake_client):
        out = io.StringIO()
        cm = {'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'cfg', 'namespace': 'default'}}
        Applier(fake_client, printer=ResourcePrinter(out=out, dry_run=True), dry_run=True).apply([cm])
        assert lines(out) == ['configmap/cfg created (dry run)']
        assert 'apply' not in fake_client.verbs()


class TestChartExecutorApply:
    """Test ChartExecutor.apply."""

    def test_full_lifecycle(self, fake_client, config, chart_dir):
        out = io.StringIO()
        chart = load_chart(str(chart_dir))
        fake_client.watch_results.append([WatchEvent('MODIFIED', make_job('schema', status=complete_status()))])

        result = ChartExecutor(fake_client, config, out=out).apply(chart)

        assert result.success, result.message
        assert result.details == {'applied': 3, 'pruned': 0}
        assert lines(out) == [
            'hook job.batch/schema triggered (timeout 5m0s)',
            'job.batch/schema completed',
            'configmap/web-config created',
            'service/web created',
            'statefulset.apps/db created',
            'hook job.batch/smoke triggered (no-wait)',
        ]

    def test_reapply_replaces_hooks(self, fake_client, config, chart_dir):
        chart = load_chart(str(chart_dir))
        fake_client.watch_results.append([WatchEvent('MODIFIED', make_job('schema', status=complete_status()))])
        ChartExecutor(fake_client, config, out=io.StringIO()).apply(chart)

        out = io.StringIO()
        fake_client.watch_results.append([WatchEvent('MODIFIED', make_job('schema', status=complete_status()))])
        result = ChartExecutor(fake_client, config, out=out).apply(load_chart(str(chart_dir)))

        assert result.success, result.message
        assert lines(out)[:3] == [
            'job.batch/schema deleted',
            'hook job.batch/schema triggered (timeout 5m0s)',
            'job.batch/schema completed',
        ]
        assert 'configmap/web-config configured' in lines(out)

    def test_reapply_prunes_removed_statefulset_and_claims(self, fake_client, config, chart_dir):
        """A StatefulSet dropped from the chart is pruned along with its claims."""
        fake_client.watch_results.append([WatchEvent('MODIFIED', make_job('schema', status=complete_status()))])
        ChartExecutor(fake_client, config, out=io.StringIO()).apply(load_chart(str(chart_dir)))
        fake_client.add(PVC_GVR, {
            'apiVersion': 'v1',
            'kind': 'PersistentVolumeClaim',
            'metadata': {'name': 'data-db-0', 'namespace': 'default',
                         'labels': {'chart-driver/owned-by-statefulset': 'db'}},
        })
        (chart_dir / 'db.yaml').unlink()

        out = io.StringIO()
        fake_client.watch_results.append([WatchEvent('MODIFIED', make_job('schema', status=complete_status()))])
        result = ChartExecutor(fake_client, config, out=out).apply(load_chart(str(chart_dir)))

        assert result.success, result.message
        assert result.details == {'applied': 2, 'pruned': 1}
        assert lines(out) == [
            'job.batch/schema deleted',
            'hook job.batch/schema triggered (timeout 5m0s)',
            'job.batch/schema completed',
            'configmap/web-config configured',
            'service/web configured',
            'statefulset.apps/db pruned',
            'job.batch/smoke deleted',
            'hook job.batch/smoke triggered (no-wait)',
            'persistentvolumeclaim/data-db-0 deleted',
        ]
        remaining = {(key[0].resource, key[2]) for key in fake_client.store}
        assert ('statefulsets', 'db') not in remaining
        assert ('persistentvolumeclaims', 'data-db-0') not in remaining

    def test_prune_keeps_resources_of_other_charts(self, fake_client, config):
        configmaps = fake_client.resource_for('v1', 'ConfigMap')
        fake_client.add(configmaps, {
            'apiVersion': 'v1', 'kind': 'ConfigMap',
            'metadata': {'name': 'foreign', 'namespace': 'default',
                         'labels': {'chart-driver/chart-name': 'other'}},
        })
        fake_client.add(configmaps, {
            'apiVersion': 'v1', 'kind': 'ConfigMap',
            'metadata': {'name': 'stale', 'namespace': 'default',
                         'labels': {'chart-driver/chart-name': 'shop'}},
        })
        cm = {'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'cfg'}}
        out = io.StringIO()

        result = ChartExecutor(fake_client, config, out=out).apply(build_chart('shop', 'default', [cm]))

        assert result.success, result.message
        assert lines(out) == ['configmap/cfg created', 'configmap/stale pruned']
        assert (configmaps, 'default', 'foreign') in fake_client.store
        assert result.message == 'Chart shop applied (1 resource(s), 1 pruned)'

    def test_no_hooks(self, fake_client, config, chart_dir):
        out = io.StringIO()

        result = ChartExecutor(fake_client, config, out=out, no_hooks=True).apply(load_chart(str(chart_dir)))

        assert result.success, result.message
        assert 'create' not in fake_client.verbs()
        assert not any(line.startswith('hook ') for line in lines(out))

    def test_hook_timeout_fails(self, fake_client, config):
        job = make_job('migrate', hook_type='post-apply')
        chart = build_chart('shop', 'default', [job])

        result = ChartExecutor(fake_client, config, out=io.StringIO()).apply(chart)

        assert result.success is False
        assert result.message == 'timed out waiting for the condition on jobs.batch/migrate'
        assert result.details == {'error': 'WaitTimeoutError'}

    def test_unknown_kind_fails(self, fake_client, config):
        widget = {'apiVersion': 'example.com/v1', 'kind': 'Widget', 'metadata': {'name': 'w'}}
        chart = build_chart('shop', 'default', [widget])

        result = ChartExecutor(fake_client, config, out=io.StringIO()).apply(chart)

        assert result.success is False
        assert '404' in result.message

    def test_dry_run(self, fake_client, config, chart_dir):
        out = io.StringIO()
        result = ChartExecutor(fake_client, config, dry_run=True, out=out).apply(load_chart(str(chart_dir)))

        assert result.success
        assert all(line.endswith('(dry run)') for line in lines(out))
        assert not {'create', 'apply', 'delete'} & set(fake_client.verbs())


class TestResourcePruner:
    """Test ResourcePruner."""

    def test_forbidden_list_is_skipped(self, fake_client):
        deleter = MagicMock()
        client = MagicMock(wraps=fake_client)
        client.list.side_effect = ApiException(status=403, reason='Forbidden')
        chart = build_chart('shop', 'default', [{'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'cfg'}}])

        assert ResourcePruner(client, deleter).prune(chart) == []
        deleter.delete.assert_not_called()

    def test_server_errors_propagate(self, fake_client):
        client = MagicMock(wraps=fake_client)
        client.list.side_effect = ApiException(status=500, reason='boom')
        chart = build_chart('shop', 'default', [{'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'cfg'}}])

        with pytest.raises(ApiException):
            ResourcePruner(client, MagicMock()).prune(chart)

    def test_lists_chart_resources_per_namespace(self, fake_client):
        objs = [
            {'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'a'}},
            {'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'b', 'namespace': 'jobs'}},
        ]
        ResourcePruner(fake_client, MagicMock()).prune(build_chart('shop', 'default', objs))

        configmap_lists = [a for a in fake_client.actions if a[0] == 'list' and a[1] == 'configmaps']
        assert configmap_lists == [
            ('list', 'configmaps', 'default', 'chart-driver/chart-name=shop', None),
            ('list', 'configmaps', 'jobs', 'chart-driver/chart-name=shop', None),
        ]


class TestChartExecutorDelete:
    """Test ChartExecutor.delete."""

    def _applied(self, fake_client, config, chart_dir):
        fake_client.watch_results.append([WatchEvent('MODIFIED', make_job('schema', status=complete_status()))])
        ChartExecutor(fake_client, config, out=io.StringIO()).apply(load_chart(str(chart_dir)))
        fake_client.actions.clear()

    def test_deletes_in_order_and_prunes_claims(self, fake_client, config, chart_dir):
        self._applied(fake_client, config, chart_dir)
        fake_client.add(PVC_GVR, {
            'apiVersion': 'v1',
            'kind': 'PersistentVolumeClaim',
            'metadata': {'name': 'data-db-0', 'namespace': 'default',
                         'labels': {'chart-driver/owned-by-statefulset': 'db'}},
        })
        out = io.StringIO()

        result = ChartExecutor(fake_client, config, out=out).delete(load_chart(str(chart_dir)))

        assert result.success, result.message
        assert lines(out) == [
            'statefulset.apps/db deleted',
            'service/web deleted',
            'configmap/web-config deleted',
            'persistentvolumeclaim/data-db-0 deleted',
        ]
        remaining = {key[2] for key in fake_client.store}
        assert remaining == {'schema', 'smoke'}

    def test_delete_when_nothing_deployed(self, fake_client, config, chart_dir):
        out = io.StringIO()
        result = ChartExecutor(fake_client, config, out=out).delete(load_chart(str(chart_dir)))
        assert result.success
        assert out.getvalue() == ''

    def test_unknown_kind_is_skipped(self, fake_client, config):
        widget = {'apiVersion': 'example.com/v1', 'kind': 'Widget', 'metadata': {'name': 'w'}}
        result = ChartExecutor(fake_client, config, out=io.StringIO()).delete(build_chart('shop', 'default', [widget]))
        assert result.success
        assert result.details == {'deleted': 0}

    def test_pre_and_post_delete_hooks(self, fake_client, config):
        pre = make_job('backup', hook_type='pre-delete', annotations={'chart-driver/hook-no-wait': 'true'})
        post = make_job('cleanup', hook_type='post-delete', annotations={'chart-driver/hook-no-wait': 'true'})
        cm = {'apiVersion': 'v1', 'kind': 'ConfigMap', 'metadata': {'name': 'cfg'}}
        chart = build_chart('shop', 'default', [pre, cm, post])
        fake_client.add(fake_client.resource_for('v1', 'ConfigMap'), dict(cm))
        out = io.StringIO()

        result = ChartExecutor(fake_client, config, out=out).delete(chart)

        assert result.success, result.message
        assert lines(out) == [
            'hook job.batch/backup triggered (no-wait)',
            'configmap/cfg deleted',
            'hook job.batch/cleanup triggered (no-wait)',
        ]
