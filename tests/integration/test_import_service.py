"""Integration tests for the import pipeline: real SQLite metadata store,
in-memory vector index, mocked LLM gateway."""

from pathlib import Path

import pytest

from services.book_import.ImportService import ImportService
from shared.exceptions import ProviderError, StoreError
from shared.models.import_report import ImportState

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_BODY_V1 = "# Un\n" + "a" * 2500 + "\n# Deux\nbeta\n# Trois\ngamma"
_BODY_V2 = "# Un\nnouveau texte"


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def service(helper_config, llm_client, rag_client, meta_client) -> ImportService:
    return ImportService(
        helper_config=helper_config,
        llm_client=llm_client,
        rag_client=rag_client,
        meta_client=meta_client,
    )


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestImport:
    async def test_new_book_is_stored_summarised_indexed_and_moved(
        self, service, data_dir, write_manuscript, meta_client, rag_client, llm_client
    ) -> None:
        write_manuscript(data_dir, "dune.md", "dune", "Dune", _BODY_V1, authors=["Frank Herbert"], tags=["sf"])

        report = await service.do_import_directory(data_dir)

        assert (report.processed, report.skipped, report.failed) == (1, 0, 0)
        result = report.results[0]
        assert result.state == ImportState.RELOCATED
        assert result.reached == ImportState.INDEXED
        assert (data_dir / "processed" / "dune.md").exists()
        assert not (data_dir / "dune.md").exists()

        detail = await meta_client.do_get_detail("dune")
        assert detail.summary == "Un résumé."
        assert [c.title for c in detail.chapter_summaries] == ["Un", "Deux", "Trois"]

        # chapter "Un" is 2500 chars: two windows; "Deux" and "Trois" one each
        assert await rag_client.do_count() == 4
        payloads = [p for _, p in rag_client.points.values()]
        assert {p.book_id for p in payloads} == {str(detail.id)}
        assert {p.chapter for p in payloads} == {"Un", "Deux", "Trois"}
        assert all(p.authors == ["Frank Herbert"] and p.tags == ["sf"] for p in payloads)
        assert rag_client.calls == [("upsert", 4)]

    async def test_frontmatter_summary_wins(self, service, data_dir, write_manuscript, meta_client, llm_client) -> None:
        write_manuscript(data_dir, "a.md", "a", "A", "texte", summary="Résumé éditeur.")

        await service.do_import_directory(data_dir)

        llm_client.do_summarize.assert_not_awaited()
        assert (await meta_client.do_get_detail("a")).summary == "Résumé éditeur."

    async def test_holding_areas_created_without_files(self, service, data_dir) -> None:
        report = await service.do_import_directory(data_dir)
        assert report.results == []
        assert (data_dir / "processed").is_dir()
        assert (data_dir / "failed").is_dir()

    async def test_files_processed_in_name_order(self, service, data_dir, write_manuscript) -> None:
        for name in ("c.md", "a.md", "b.md"):
            write_manuscript(data_dir, name, name[0], name.upper(), "texte")
        (data_dir / "notes.txt").write_text("ignored")

        report = await service.do_import_directory(data_dir)

        assert [r.filename for r in report.results] == ["a.md", "b.md", "c.md"]
        assert (data_dir / "notes.txt").exists()


# ---------------------------------------------------------------------------
# Idempotency and supersession
# ---------------------------------------------------------------------------


class TestReimport:
    async def test_unchanged_file_is_skipped(
        self, service, data_dir, write_manuscript, meta_client, rag_client, llm_client
    ) -> None:
        path = write_manuscript(data_dir, "dune.md", "dune", "Dune", _BODY_V1)
        raw = path.read_bytes()
        await service.do_import_directory(data_dir)
        count_before = await rag_client.do_count()

        (data_dir / "dune.md").write_bytes(raw)
        report = await service.do_import_directory(data_dir)

        assert (report.processed, report.skipped, report.failed) == (0, 1, 0)
        assert report.results[0].reached == ImportState.SKIPPED
        assert (data_dir / "processed" / "dune.md").read_bytes() == raw
        assert (await meta_client.do_search()).total == 1
        assert await rag_client.do_count() == count_before
        assert llm_client.do_embed.await_count == 1

    async def test_changed_file_supersedes_record_and_vectors(
        self, service, data_dir, write_manuscript, meta_client, rag_client
    ) -> None:
        write_manuscript(data_dir, "dune.md", "dune", "Dune", _BODY_V1, tags=["sf"])
        await service.do_import_directory(data_dir)
        book_id = (await meta_client.do_find_by_reference("dune")).id

        write_manuscript(data_dir, "dune.md", "dune", "Dune", _BODY_V2, tags=["culte"])
        report = await service.do_import_directory(data_dir)

        assert report.processed == 1
        assert (await meta_client.do_find_by_reference("dune")).id == book_id
        detail = await meta_client.do_get_detail("dune")
        assert detail.tags == ["culte"]
        assert [c.chapter_idx for c in detail.chapter_summaries] == [0]
        # old vectors deleted before the new ones are inserted
        assert rag_client.calls[-2:] == [("delete", str(book_id)), ("upsert", 1)]
        assert [p.chunk_text for _, p in rag_client.points.values()] == ["nouveau texte"]

    async def test_force_reimports_unchanged_file(self, service, data_dir, write_manuscript, rag_client, llm_client) -> None:
        path = write_manuscript(data_dir, "a.md", "a", "A", "texte")
        raw = path.read_bytes()
        await service.do_import_directory(data_dir)
        (data_dir / "a.md").write_bytes(raw)

        report = await service.do_import_directory(data_dir, force=True)

        assert report.processed == 1
        assert rag_client.calls[-2][0] == "delete"
        assert await rag_client.do_count() == 1
        assert llm_client.do_embed.await_count == 2


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_one_invalid_file_does_not_stop_the_batch(self, service, data_dir, write_manuscript, meta_client) -> None:
        write_manuscript(data_dir, "01.md", "un", "Un", "texte")
        (data_dir / "02.md").write_text("pas de front-matter", encoding="utf-8")
        write_manuscript(data_dir, "03.md", "trois", "Trois", "texte")

        report = await service.do_import_directory(data_dir)

        assert (report.processed, report.skipped, report.failed) == (2, 0, 1)
        assert sorted(p.name for p in (data_dir / "processed").iterdir()) == ["01.md", "03.md"]
        assert [p.name for p in (data_dir / "failed").iterdir()] == ["02.md"]
        failed = report.results[1]
        assert failed.state == ImportState.FAILED
        assert failed.reached == ImportState.LOADED
        assert "front-matter" in failed.error
        assert await meta_client.do_find_by_reference("trois") is not None

    async def test_summary_failure_is_not_fatal(self, service, data_dir, write_manuscript, meta_client, llm_client) -> None:
        llm_client.do_summarize.side_effect = ProviderError("quota", status_code=429)
        write_manuscript(data_dir, "a.md", "a", "A", "texte")

        report = await service.do_import_directory(data_dir)

        assert report.processed == 1
        assert (await meta_client.do_get_detail("a")).summary is None

    async def test_chapter_summary_failure_degrades_to_none(
        self, service, data_dir, write_manuscript, meta_client, rag_client, llm_client
    ) -> None:
        llm_client.do_summarize_chapters.side_effect = ProviderError("quota", status_code=429)
        write_manuscript(data_dir, "a.md", "a", "A", "# Un\ntexte")

        report = await service.do_import_directory(data_dir)

        assert report.results[0].reached == ImportState.INDEXED
        assert (await meta_client.do_get_detail("a")).chapter_summaries == []
        assert await rag_client.do_count() == 1

    async def test_embedding_failure_fails_after_checkpoint(
        self, service, data_dir, write_manuscript, meta_client, rag_client, llm_client
    ) -> None:
        llm_client.do_embed.side_effect = ProviderError("down", status_code=503)
        write_manuscript(data_dir, "a.md", "a", "A", "texte")

        report = await service.do_import_directory(data_dir)

        result = report.results[0]
        assert result.state == ImportState.FAILED
        assert result.reached == ImportState.SUMMARIZED
        assert (data_dir / "failed" / "a.md").exists()
        # metadata write is durable: the book stays searchable
        assert (await meta_client.do_search("texte")).total == 1
        assert await rag_client.do_count() == 0

    async def test_store_failure_fails_the_document(self, service, data_dir, write_manuscript, rag_client) -> None:
        async def _broken_upsert(points):
            raise StoreError("qdrant unavailable", status_code=503)

        rag_client.do_upsert_points = _broken_upsert
        write_manuscript(data_dir, "a.md", "a", "A", "texte")

        report = await service.do_import_directory(data_dir)

        assert report.failed == 1
        assert (data_dir / "failed" / "a.md").exists()


    async def test_unmovable_success_goes_to_failed(self, service, data_dir, write_manuscript, meta_client) -> None:
        (data_dir / "processed").write_text("not a directory", encoding="utf-8")
        path = write_manuscript(data_dir, "a.md", "a", "A", "texte")

        result = await service.do_import_file(path)

        assert result.state == ImportState.FAILED
        assert result.reached == ImportState.INDEXED
        assert "processed/" in result.error
        assert not path.exists()
        assert (data_dir / "failed" / "a.md").exists()
        assert await meta_client.do_find_by_reference("a") is not None

# ---------------------------------------------------------------------------
# Without a provider key
# ---------------------------------------------------------------------------


class TestWithoutKey:
    async def test_metadata_only_import(self, service, data_dir, write_manuscript, meta_client, rag_client, llm_client) -> None:
        llm_client.has_api_key.return_value = False
        write_manuscript(data_dir, "a.md", "a", "A", "# Un\ntexte")

        report = await service.do_import_directory(data_dir)

        assert report.processed == 1
        llm_client.do_summarize.assert_not_awaited()
        llm_client.do_summarize_chapters.assert_not_awaited()
        llm_client.do_embed.assert_not_awaited()
        detail = await meta_client.do_get_detail("a")
        assert detail.summary is None
        assert await rag_client.do_count() == 0

    async def test_update_still_clears_stale_vectors_and_chapter_summaries(
        self, service, data_dir, write_manuscript, meta_client, rag_client, llm_client
    ) -> None:
        write_manuscript(data_dir, "a.md", "a", "A", "# Un\ntexte")
        await service.do_import_directory(data_dir)
        assert await rag_client.do_count() == 1

        llm_client.has_api_key.return_value = False
        write_manuscript(data_dir, "a.md", "a", "A", "# Un\nautre texte")
        await service.do_import_directory(data_dir)

        assert await rag_client.do_count() == 0
        assert (await meta_client.do_get_detail("a")).chapter_summaries == []
