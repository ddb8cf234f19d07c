import logging
import sys
from logging.handlers import SysLogHandler
from unittest.mock import Mock

import pytest

from conftest import make_request
from preflight.errors import SessionCorruptionError, SessionError
from preflight.pipeline import (
    config_phase,
    core_phase,
    debugger_phase,
    error_phase,
    logger_phase,
    page_phase,
    session_phase,
)
from preflight.pipeline.context import CONTINUE, Recovered, ShortCircuit
from preflight.services.log import SYSLOG_FORMAT
from preflight.services.session import Session


def _ready(make_context, config=None, request=None):
    ctx = make_context(config, request)
    config_phase.execute(ctx, request or make_request())
    return ctx


# --- LoggerInit ---


def test_syslog_handler_replaces_default_sink(make_context):
    ctx = _ready(make_context, {"system": {"log": {"handler": "syslog"}}})
    default = ctx.log.handlers[-1]

    assert logger_phase.execute(ctx, make_request()) is CONTINUE

    assert default not in ctx.log.handlers
    active = ctx.log.handlers[-1]
    assert isinstance(active, SysLogHandler)
    assert active.facility == SysLogHandler.LOG_LOCAL6
    assert active.formatter._fmt == SYSLOG_FORMAT


def test_syslog_line_format(make_context):
    ctx = _ready(make_context, {"system": {"log": {"handler": "syslog"}}})
    logger_phase.execute(ctx, make_request())
    record = logging.LogRecord(ctx.log.name, logging.WARNING, __file__, 1, "disk full", None, None)
    line = ctx.log.handlers[-1].format(record)
    assert line == f"{ctx.log.name}.WARNING: disk full "


def test_syslog_custom_facility(make_context):
    ctx = _ready(
        make_context,
        {"system": {"log": {"handler": "syslog", "syslog": {"facility": "local3"}}}},
    )
    logger_phase.execute(ctx, make_request())
    assert ctx.log.handlers[-1].facility == SysLogHandler.LOG_LOCAL3


def test_syslog_swap_is_idempotent(make_context):
    ctx = _ready(make_context, {"system": {"log": {"handler": "syslog"}}})
    logger_phase.execute(ctx, make_request())
    installed = list(ctx.log.handlers)
    logger_phase.execute(ctx, make_request())
    assert ctx.log.handlers == installed


@pytest.mark.parametrize("config", [{}, {"system": {"log": {"handler": "file"}}}])
def test_file_handler_leaves_sink_untouched(make_context, config):
    ctx = _ready(make_context, config)
    before = list(ctx.log.handlers)
    logger_phase.execute(ctx, make_request())
    assert ctx.log.handlers == before
    assert isinstance(before[-1], logging.FileHandler)


# --- ErrorHandlerReset ---


def test_error_handlers_follow_config(make_context):
    ctx = _ready(make_context, {"system": {"errors": {"display": 1, "log": False}}})
    error_phase.execute(ctx, make_request())
    assert ctx.errors.verbosity == 1
    assert sys.excepthook == ctx.errors._excepthook


def test_error_handler_logs_critical(make_context):
    ctx = _ready(make_context)
    error_phase.execute(ctx, make_request())
    ctx.log.critical = Mock()
    response = ctx.errors.handle(RuntimeError("boom"), make_request())
    assert response.status_code == 500
    ctx.log.critical.assert_called_once()


# --- DebuggerInit ---


def test_debugger_disabled_continues_without_request_time(make_context):
    request = make_request("/__clockwork/latest")
    ctx = _ready(make_context, request=request)
    assert debugger_phase.execute(ctx, request) is CONTINUE
    assert ctx.clockwork is None
    assert not hasattr(request.state, "request_time")


def test_debugger_records_request_time(make_context):
    request = make_request("/blog")
    ctx = _ready(make_context, {"system": {"debugger": {"enabled": True}}}, request)
    assert debugger_phase.execute(ctx, request) is CONTINUE
    assert request.state.request_time == ctx.request_time
    assert ctx.clockwork is not None


def test_debugger_intercepts_clockwork_path(make_context):
    request = make_request("/__clockwork/latest")
    ctx = _ready(make_context, {"system": {"debugger": {"enabled": True}}}, request)
    outcome = debugger_phase.execute(ctx, request)
    assert isinstance(outcome, ShortCircuit)
    assert outcome.response.status_code == 404
    assert ctx.clockwork is None


# --- CoreInit ---


def test_core_applies_timezone_and_locale(make_context):
    ctx = _ready(
        make_context,
        {"system": {"timezone": "Europe/Berlin", "default_locale": "de_DE.UTF-8"}},
    )
    core_phase.execute(ctx, make_request())
    assert ("timezone", "Europe/Berlin") in ctx.env.calls
    assert ("locale", "de_DE.UTF-8") in ctx.env.calls
    assert ctx.output is not None


def test_core_skips_unset_timezone(make_context):
    ctx = _ready(make_context)
    core_phase.execute(ctx, make_request())
    assert ctx.env.calls == [("buffer", False)]


def test_core_gzip_needs_client_support(make_context):
    config = {"system": {"cache": {"gzip": True}}}
    ctx = _ready(make_context, config)
    core_phase.execute(ctx, make_request(headers={"Accept-Encoding": "gzip, deflate"}))
    assert ctx.output.compressed

    ctx = _ready(make_context, config)
    core_phase.execute(ctx, make_request())
    assert not ctx.output.compressed


# --- PageRegister + RedirectCheck ---


def test_trailing_slash_redirects(make_context):
    request = make_request("/foo/")
    ctx = _ready(make_context, {"system": {"pages": {"redirect_trailing_slash": True}}}, request)
    outcome = page_phase.execute(ctx, request)
    assert isinstance(outcome, ShortCircuit)
    assert outcome.response.status_code == 302
    assert outcome.response.headers["location"] == "/foo"


def test_redirect_keeps_query_and_configured_code(make_context):
    request = make_request("/blog/", query="page=2")
    config = {"system": {"pages": {"redirect_trailing_slash": True, "redirect_default_code": 301}}}
    ctx = _ready(make_context, config, request)
    outcome = page_phase.execute(ctx, request)
    assert outcome.response.status_code == 301
    assert outcome.response.headers["location"] == "/blog?page=2"


@pytest.mark.parametrize(
    "path,enabled",
    [("/foo", True), ("/", True), ("/foo/", False)],
)
def test_no_redirect(make_context, path, enabled):
    request = make_request(path)
    ctx = _ready(make_context, {"system": {"pages": {"redirect_trailing_slash": enabled}}}, request)
    assert page_phase.execute(ctx, request) is CONTINUE
    assert ctx.pages.registered
    assert ctx.uri.path() == path


# --- SessionInit ---


def _session_mock(side_effect=None) -> Mock:
    session = Mock(spec=Session)
    session.init.side_effect = side_effect
    return session


def test_session_initialized(make_context):
    ctx = _ready(make_context)
    ctx.session = _session_mock()
    assert session_phase.execute(ctx, make_request()) is CONTINUE
    ctx.session.init.assert_called_once()


def test_session_corruption_retried_once(make_context):
    ctx = _ready(make_context)
    ctx.session = _session_mock([SessionCorruptionError("abc"), None])
    outcome = session_phase.execute(ctx, make_request())
    assert outcome == Recovered(session_phase.CORRUPTION_MESSAGE, "error")
    assert ctx.session.init.call_count == 2


def test_session_retry_outcome_is_final(make_context):
    ctx = _ready(make_context)
    ctx.session = _session_mock([SessionCorruptionError("abc"), SessionCorruptionError("def")])
    with pytest.raises(SessionCorruptionError):
        session_phase.execute(ctx, make_request())
    assert ctx.session.init.call_count == 2


def test_session_generic_error_is_fatal(make_context):
    ctx = _ready(make_context)
    ctx.session = _session_mock(SessionError("store offline"))
    with pytest.raises(SessionError):
        session_phase.execute(ctx, make_request())
    assert ctx.session.init.call_count == 1


def test_session_initialize_disabled(make_context):
    ctx = _ready(make_context, {"system": {"session": {"initialize": False}}})
    ctx.session = _session_mock()
    assert session_phase.execute(ctx, make_request()) is CONTINUE
    ctx.session.init.assert_not_called()


def test_no_session_capability(make_context):
    ctx = _ready(make_context)
    ctx.session = None
    assert session_phase.execute(ctx, make_request()) is CONTINUE
