# -*- coding: utf-8 -*-
from unittest import TestCase
import resource

from exercisetools.run import isolate, limit


class Limit_test(TestCase):
    def test_less(self):
        less = limit.__dict__['__limit_less']
        assert less(42, 42)
        assert not less(42, 41)
        assert less(1e99, resource.RLIM_INFINITY)
        assert less(resource.RLIM_INFINITY, resource.RLIM_INFINITY)
        assert not less(resource.RLIM_INFINITY, 1e99)


def test_try_limit_caps_at_hard_limit(monkeypatch):
    calls = []
    monkeypatch.setattr(resource, 'getrlimit', lambda lim: (10, 100))
    monkeypatch.setattr(resource, 'setrlimit', lambda lim, values: calls.append(values))

    limit.try_limit(resource.RLIMIT_CPU, 5, 50)
    limit.try_limit(resource.RLIMIT_CPU, 500, resource.RLIM_INFINITY)
    assert calls == [(5, 50), (100, 100)]


class _Recorder:
    def __init__(self):
        self.warnings = []

    def warning(self, msg):
        self.warnings.append(msg)


def test_capabilities_warn_without_namespaces(monkeypatch):
    monkeypatch.setattr(resource, 'getrlimit', lambda lim: (resource.RLIM_INFINITY, resource.RLIM_INFINITY))
    monkeypatch.setattr(isolate, 'available', lambda: False)

    logger = _Recorder()
    limit.check_limit_capabilities(logger)
    assert len(logger.warnings) == 1
    assert 'namespaces' in logger.warnings[0]

    logger = _Recorder()
    limit.check_limit_capabilities(logger, confine=False)
    assert logger.warnings == []
