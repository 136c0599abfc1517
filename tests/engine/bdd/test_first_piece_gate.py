"""BDD tests for the first piece approval gate."""

from pytest_bdd import given, parsers, scenarios, then, when

from production.manufacturing.job import FunnelStatus

scenarios("features/first_piece_gate.feature")

_PATH_TO = {
    FunnelStatus.SAMPLE_PRODUCTION.value: [FunnelStatus.SAMPLE_PRODUCTION],
    FunnelStatus.FIRST_PIECE_REVIEW.value: [FunnelStatus.SAMPLE_PRODUCTION, FunnelStatus.FIRST_PIECE_REVIEW],
}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the job has reached "{status}"'))
def _(engine, job_id, status):
    for step in _PATH_TO[status]:
        engine.transition_job(job_id, step, actor_id="mfr-1").unwrap()


@given(parsers.cfparse('samples "{reference}" have been submitted'))
def _(engine, job_id, reference):
    engine.submit_samples(job_id, [reference], actor_id="mfr-1").unwrap()


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the job is moved to "{status}"'), target_fixture="result")
def _(engine, job_id, status):
    return engine.transition_job(job_id, status, actor_id="mfr-1")


@when(parsers.cfparse('samples "{reference}" are submitted'), target_fixture="result")
def _(engine, job_id, reference):
    return engine.submit_samples(job_id, [reference], actor_id="mfr-1")


@when("the first piece is approved", target_fixture="result")
def _(engine, job_id):
    return engine.approve_first_piece(job_id, actor_id="qa-1")


@when("the first piece is rejected without notes", target_fixture="result")
def _(engine, job_id):
    return engine.reject_first_piece(job_id, "qa-1", "")


@when(parsers.cfparse('the first piece is rejected with notes "{notes}"'), target_fixture="result")
def _(engine, job_id, notes):
    return engine.reject_first_piece(job_id, "qa-1", notes)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the job status is "{status}"'))
def _(engine, job_id, status):
    assert engine.get_job(job_id).unwrap().manufacturer_status == status


@then(parsers.cfparse('the first piece status is "{status}"'))
def _(engine, job_id, status):
    assert engine.get_first_piece(job_id).unwrap().status == status


@then(parsers.cfparse('the job first piece status is "{status}"'))
def _(engine, job_id, status):
    assert engine.get_job(job_id).unwrap().first_piece_status == status
