"""
Unit tests for diagnostics sinks and relay exception handlers.
"""

import logging

from members import diagnostics


def _event(kind: str = diagnostics.ON_REGISTER, **detail: object) -> diagnostics.DiagnosticEvent:
    return diagnostics.DiagnosticEvent(kind=kind, message="msg", detail=dict(detail))


def test_collecting_sink_keeps_order() -> None:
    sink = diagnostics.CollectingDiagnostics()

    sink.record(_event(diagnostics.ON_CONTEXT_RECEIVED))
    sink.record(_event(diagnostics.ON_STATE_FAILED))

    assert sink.kinds() == [diagnostics.ON_CONTEXT_RECEIVED, diagnostics.ON_STATE_FAILED]
    assert len(sink.failures()) == 1

    sink.clear()
    assert sink.events == []


def test_silent_sink_accepts_events() -> None:
    diagnostics.SilentDiagnostics().record(_event())


def test_failure_kinds() -> None:
    assert _event(diagnostics.ON_STATE_FAILED).is_failure
    assert _event(diagnostics.ON_RELAY_ERROR).is_failure
    assert not _event(diagnostics.ON_REGISTER).is_failure


def test_logging_sink_levels(caplog) -> None:
    log = logging.getLogger("tests.members.diagnostics")
    sink = diagnostics.LoggingDiagnostics(log)

    with caplog.at_level(logging.DEBUG, logger="tests.members.diagnostics"):
        sink.record(_event(diagnostics.ON_REGISTER, ids=["a"]))
        try:
            raise RuntimeError("stream broke")
        except RuntimeError as e:
            sink.record(
                diagnostics.DiagnosticEvent(
                    kind=diagnostics.ON_STATE_FAILED, message="failed", exception=e
                )
            )

    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.DEBUG, logging.WARNING]
    assert "['a']" in caplog.records[0].getMessage()
    assert caplog.records[1].exc_info is not None


def test_get_callable_name() -> None:
    class Sink(object):
        def dispatch(self, action: object) -> None:
            pass

    def plain(action: object) -> None:
        pass

    assert diagnostics.get_callable_name(Sink().dispatch) == "Sink.dispatch"
    assert diagnostics.get_callable_name(plain) == "plain"


def test_relay_exception_collector() -> None:
    collector = diagnostics.RelayExceptionCollector()

    def output(action: object) -> None:
        pass

    result = collector(output, "action", ValueError("x"))

    assert result is diagnostics.CONTINUE
    assert collector.caught[0]["output"] == "output"
    assert collector.caught[0]["exception"] == "ValueError: x"

    collector.clear()
    assert collector.caught == []


def test_relay_exception_collectors_are_independent() -> None:
    """Test that each collector keeps only the errors it was handed."""
    first = diagnostics.RelayExceptionCollector()
    second = diagnostics.RelayExceptionCollector()

    first(print, "a", RuntimeError("one"))

    assert len(first.caught) == 1
    assert second.caught == []
    assert not hasattr(diagnostics, "relay_exceptions_caught")


def test_stop_and_continue_handlers(caplog) -> None:
    def output(action: object) -> None:
        pass

    with caplog.at_level(logging.ERROR, logger="members.diagnostics"):
        assert diagnostics.log_and_stop_relay_exception(
            output, "a", ValueError("x")
        ) is diagnostics.STOP
        assert diagnostics.log_and_continue_relay_exception(
            output, "a", ValueError("y")
        ) is diagnostics.CONTINUE

    assert len(caplog.records) == 2
    assert diagnostics.silent_relay_exception(output, "a", ValueError("z")) is False
