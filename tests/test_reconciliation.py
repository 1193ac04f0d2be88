"""Tests for reconciliation of published articles against WordPress."""

import pytest

from pressdesk.integrations.wordpress import PostLookup, WordPressTransportError
from pressdesk.publishing.models import ArticleStatus
from pressdesk.publishing.reconciliation import ReconciliationJob, Verdict, classify_lookup


@pytest.fixture
def job(storage, wp_client):
    return ReconciliationJob(storage, wp_client)


def _script(lookups):
    """fetch_post outcome keyed by wp post id; exceptions are raised"""
    def respond(api, creds, post_id):
        return lookups[post_id]
    return respond


# ===================================================================
# Classification
# ===================================================================

class TestClassifyLookup:

    @pytest.mark.unit
    @pytest.mark.parametrize("lookup,expected", [
        (PostLookup(200, {"id": 5}), Verdict.PRESENT),
        (PostLookup(404, {"code": "rest_post_invalid_id"}), Verdict.ABSENT),
        (PostLookup(404, None), Verdict.ABSENT),
        (PostLookup(410, {"code": "gone"}), Verdict.ABSENT),
        (PostLookup(200, {"code": "rest_authentication_failed"}), Verdict.UNVERIFIABLE),
        (PostLookup(200, {"error": "INVALID_PASSWORD"}), Verdict.UNVERIFIABLE),
        (PostLookup(401, {"code": "rest_not_logged_in"}), Verdict.UNVERIFIABLE),
        (PostLookup(403, {"code": "rest_forbidden"}), Verdict.UNVERIFIABLE),
        (PostLookup(500, {"code": "internal"}), Verdict.UNVERIFIABLE),
        (PostLookup(503, None), Verdict.UNVERIFIABLE),
        (PostLookup(429, None), Verdict.UNVERIFIABLE),
        (PostLookup(200, None, decodable=False, body="<html>"), Verdict.UNVERIFIABLE),
        (PostLookup(200, None), Verdict.UNVERIFIABLE),
        (PostLookup(200, {"title": {"rendered": "x"}}), Verdict.UNVERIFIABLE),
        (PostLookup(400, {"code": "rest_post_invalid_id"}), Verdict.ABSENT),
        (PostLookup(400, {"code": "rest_invalid_param"}), Verdict.UNVERIFIABLE),
        (PostLookup(200, {"code": "rest_post_invalid_id"}), Verdict.UNVERIFIABLE),
    ])
    def test_verdicts(self, lookup, expected):
        assert classify_lookup(lookup) is expected


# ===================================================================
# Sweep
# ===================================================================

class TestReconciliationRun:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_only_clean_absence_deletes(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True)
        storage.add_credential("U1", "S1")
        storage.add_published_article("A", "S1", "1")
        storage.add_published_article("B", "S1", "2")
        storage.add_published_article("C", "S1", "3")
        wp_client.outcomes["fetch_post"] = _script({
            "1": PostLookup(200, {"id": 1}),
            "2": PostLookup(404, None),
            "3": WordPressTransportError("timeout"),
        })

        report = await job.run()

        assert report.deleted_count == 1
        assert report.deleted_ids == ["B"]
        assert set(storage.articles) == {"A", "C"}
        assert storage.records_for("B") == []
        assert len(storage.records_for("C")) == 1
        body = report.to_dict()
        assert body["deletedCount"] == 1
        assert {a["id"] for a in body["articles"]} == {"A", "C"}
        assert (body["checked"], body["present"], body["unverifiable"]) == (3, 1, 1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_run_deletes_nothing(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True)
        storage.add_credential("U1", "S1")
        storage.add_published_article("A", "S1", "1")
        storage.add_published_article("B", "S1", "2")
        wp_client.outcomes["fetch_post"] = _script({
            "1": PostLookup(200, {"id": 1}),
            "2": PostLookup(404, {"code": "rest_post_invalid_id"}),
        })

        first = await job.run()
        second = await job.run()

        assert first.deleted_count == 1
        assert second.deleted_count == 0
        assert set(storage.articles) == {"A"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_every_lookup_failing_deletes_nothing(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True)
        storage.add_credential("U1", "S1")
        for n in range(3):
            storage.add_published_article(f"A{n}", "S1", str(n))
        wp_client.outcomes["fetch_post"] = WordPressTransportError("down")

        report = await job.run()

        assert report.deleted_count == 0
        assert report.unverifiable == 3
        assert len(storage.articles) == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("lookup", [
        PostLookup(200, {"code": "rest_authentication_failed"}),
        PostLookup(401, {"code": "rest_not_logged_in"}),
        PostLookup(502, None),
        PostLookup(200, None, decodable=False, body="<html>oops"),
        PostLookup(200, None),
        PostLookup(400, {"code": "rest_invalid_param"}),
    ])
    async def test_ambiguous_answers_keep_article(self, job, storage, wp_client, lookup):
        storage.add_site("S1", is_connected=True)
        storage.add_credential("U1", "S1")
        storage.add_published_article("A", "S1", "1")
        wp_client.outcomes["fetch_post"] = lookup

        report = await job.run()

        assert report.deleted_count == 0
        assert "A" in storage.articles

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_falls_back_to_admin_credentials(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True, admin_username="root", api_token="tok")
        storage.add_published_article("A", "S1", "1")

        await job.run()

        (_, creds, post_id), = wp_client.calls_to("fetch_post")
        assert (creds.username, creds.password, post_id) == ("root", "tok", "1")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_owner_credentials_preferred(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True)
        storage.add_credential("U1", "S1", wp_username="bob")
        storage.add_published_article("A", "S1", "1")

        await job.run()

        (_, creds, _), = wp_client.calls_to("fetch_post")
        assert creds.username == "bob"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_site_without_any_credentials_is_skipped(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True, admin_username=None)
        storage.add_published_article("A", "S1", "1")

        report = await job.run()

        assert wp_client.calls_to("fetch_post") == []
        assert report.unverifiable == 1
        assert "A" in storage.articles

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_published_article_without_record_is_left_alone(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True)
        storage.add_article("A", status=ArticleStatus.PUBLISHED, site_id="S1")

        report = await job.run()

        assert report.skipped_without_record == 1
        assert wp_client.calls == []
        assert "A" in storage.articles

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_latest_record_is_checked(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True)
        storage.add_credential("U1", "S1")
        storage.add_published_article("A", "S1", "1")
        storage.add_publishing("A", "S1", "2")
        wp_client.outcomes["fetch_post"] = _script({"2": PostLookup(200, {"id": 2})})

        report = await job.run()

        assert [args[2] for args in wp_client.calls_to("fetch_post")] == ["2"]
        assert report.present == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_one_site_failing_does_not_stop_others(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True)
        storage.add_site("S2", is_connected=True)
        storage.add_credential("U1", "S1")
        storage.add_credential("U1", "S2")
        storage.add_published_article("A", "S1", "1")
        storage.add_published_article("B", "S2", "2")

        def respond(api, creds, post_id):
            if "s1." in api:
                return WordPressTransportError("down")
            return PostLookup(404, None)

        wp_client.outcomes["fetch_post"] = respond

        report = await job.run()

        assert report.deleted_ids == ["B"]
        assert "A" in storage.articles

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_delete_does_not_abandon_the_site(self, job, storage, wp_client):
        storage.add_site("S1", is_connected=True)
        storage.add_credential("U1", "S1")
        for n in (1, 2, 3):
            storage.add_published_article(f"A{n}", "S1", str(n))
        wp_client.outcomes["fetch_post"] = lambda api, creds, post_id: PostLookup(404, None)
        storage.fail_delete_for["A2"] = ConnectionError("db down")

        report = await job.run()

        assert report.deleted_ids == ["A1", "A3"]
        assert report.delete_failures == 1
        assert report.failed_sites == []
        assert set(storage.articles) == {"A2"}
        assert len(storage.records_for("A2")) == 1
        assert report.to_dict()["deleteFailures"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nothing_published(self, job):
        report = await job.run()
        assert report.to_dict()["deletedCount"] == 0
        assert report.checked == 0
