"""Shared pytest fixtures for chart-driver tests."""

import sys
from pathlib import Path

import pytest

# Add src and tests to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeClusterClient  # noqa: E402


@pytest.fixture
def fake_client():
    """Scriptable in-memory cluster client."""
    return FakeClusterClient()


@pytest.fixture
def chart_dir(tmp_path):
    """Create a chart directory with a namespaced app, a StatefulSet and hooks.

    Contains:
    - app.yaml (ConfigMap + Service)
    - db.yaml (StatefulSet with delete-pvcs policy)
    - hooks.yaml (pre-apply and post-apply Jobs)
    - _helpers.yaml (ignored)
    """
    chart = tmp_path / 'shop'
    chart.mkdir()

    (chart / 'app.yaml').write_text("""
apiVersion: v1
kind: Service
metadata:
  name: web
spec:
  ports:
  - port: 80
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: web-config
data:
  key: value
""")

    (chart / 'db.yaml').write_text("""
apiVersion: apps/v1
kind: StatefulSet
metadata:
  name: db
  annotations:
    chart-driver/deletion-policy: delete-pvcs
spec:
  selector:
    matchLabels:
      app: db
  template:
    metadata:
      labels:
        app: db
    spec:
      containers:
      - name: db
        image: postgres
  volumeClaimTemplates:
  - metadata:
      name: data
    spec:
      accessModes: [ReadWriteOnce]
""")

    (chart / 'hooks.yaml').write_text("""
apiVersion: batch/v1
kind: Job
metadata:
  name: schema
  annotations:
    chart-driver/hook-type: pre-apply
    chart-driver/hook-wait-timeout: 5m
spec:
  template:
    spec:
      restartPolicy: Never
      containers:
      - name: schema
        image: migrate
---
apiVersion: batch/v1
kind: Job
metadata:
  name: smoke
  annotations:
    chart-driver/hook-type: post-apply
    chart-driver/hook-no-wait: "true"
spec:
  template:
    spec:
      restartPolicy: Never
      containers:
      - name: smoke
        image: curl
""")

    (chart / '_helpers.yaml').write_text("not: [valid")

    return chart
