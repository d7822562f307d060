"""Import service.

Reads markdown manuscripts from a data directory, stores their metadata in
the metadata store, summarises them, embeds their chunks into the vector
index and moves each file to processed/ or failed/.
"""

from pathlib import Path

from shared.clients.llm.LLMClientInterface import ChapterInput, LLMClientInterface
from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.exceptions import BridgeError, ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.book_parser import parse_book
from shared.helper.chunker import chunk_chapters, extract_chapters
from shared.models.book import Chapter, ChapterSummary, ExistingBook, ParsedBook
from shared.models.import_report import ImportReport, ImportResult, ImportState

PROCESSED_DIR = "processed"
FAILED_DIR = "failed"


class ImportService:
    """Runs the per-manuscript import pipeline, one file at a time.

    Ordering per book: metadata write, then vector delete, then vector
    insert. The metadata store stays authoritative if a later step fails;
    re-importing the file rebuilds the vectors.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        rag_client: RAGClientInterface,
        meta_client: MetaClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._llm_client = llm_client
        self._rag_client = rag_client
        self._meta_client = meta_client

    ##########################################
    ############### CORE IMPORT ##############
    ##########################################

    async def do_import_directory(self, data_dir: Path, force: bool = False) -> ImportReport:
        """Import every *.md file of data_dir in sorted name order.

        Args:
            data_dir (Path): Directory holding the manuscripts.
            force (bool): Re-import books whose fingerprint is unchanged.

        Returns:
            ImportReport: One result per file.
        """
        data_dir = Path(data_dir)
        for holding_area in (PROCESSED_DIR, FAILED_DIR):
            (data_dir / holding_area).mkdir(parents=True, exist_ok=True)

        files = sorted(p for p in data_dir.glob("*.md") if p.is_file())
        if not files:
            self.logging.warning("No markdown files found in %s.", data_dir)
            return ImportReport()

        self.logging.info("Importing %d file(s) from %s...", len(files), data_dir)
        report = ImportReport()
        for path in files:
            report.results.append(await self.do_import_file(path, force=force))

        self.logging.info(
            "Import complete: %d imported, %d skipped, %d failed.",
            report.processed, report.skipped, report.failed,
        )
        return report

    async def do_import_file(self, path: Path, force: bool = False) -> ImportResult:
        """Import one manuscript and relocate it next to its source directory.

        Never raises: every failure is recorded on the returned result and the
        file goes to failed/.
        """
        path = Path(path)
        result = ImportResult(filename=path.name)
        self.logging.info("Processing %s", path.name)
        try:
            raw = path.read_bytes()
            result.reached = ImportState.LOADED
            book = parse_book(raw)
            result.reference = book.frontmatter.reference

            existing = await self._meta_client.do_find_by_reference(book.frontmatter.reference)
            result.reached = ImportState.FINGERPRINT_CHECKED
            if existing is not None and existing.fingerprint == book.fingerprint and not force:
                result.reached = ImportState.SKIPPED
                self.logging.info("Skipped %s (%s): unchanged.", path.name, book.frontmatter.reference)
            else:
                await self._ingest(book, existing, result)
                self.logging.info("Imported %s (%s).", path.name, book.frontmatter.reference, color="green")
        except BridgeError as exc:
            self._fail(path, result, exc)
            return result
        except Exception as exc:
            self.logging.exception("Unexpected error while importing %s", path.name)
            self._fail(path, result, exc)
            return result

        try:
            self._relocate(path, PROCESSED_DIR)
        except OSError as exc:
            self._fail(path, result, OSError(f"could not move file to {PROCESSED_DIR}/: {exc}"))
            return result
        result.state = ImportState.RELOCATED
        return result

    ##########################################
    ############### PIPELINE #################
    ##########################################

    async def _ingest(self, book: ParsedBook, existing: ExistingBook | None, result: ImportResult) -> None:
        fm = book.frontmatter
        has_key = self._llm_client.has_api_key()

        # summary: front-matter wins, generation failure is non-fatal
        summary = fm.summary
        if not summary and has_key:
            try:
                summary = await self._llm_client.do_summarize(book.content)
            except ProviderError as exc:
                self.logging.warning("Summary generation failed for %s: %s", fm.reference, exc)
                summary = None

        # durability checkpoint: the book is searchable from here on
        if existing is not None:
            book_id = await self._meta_client.do_update_book(fm.reference, book, summary)
        else:
            book_id = await self._meta_client.do_insert_book(book, summary)
        result.reached = ImportState.PERSISTED

        chapters = extract_chapters(book.content)
        if has_key or existing is not None:
            chapter_summaries = await self._summarize_chapters(fm.reference, chapters, has_key)
            await self._meta_client.do_replace_chapter_summaries(book_id, chapter_summaries)
        result.reached = ImportState.SUMMARIZED

        chunks = chunk_chapters(chapters)
        if existing is not None:
            # stale points must never outlive the content they came from
            await self._rag_client.do_delete_by_book(str(book_id))
        if has_key and chunks:
            vectors = await self._llm_client.do_embed([chunk.text for chunk in chunks])
            points = [
                (
                    vector,
                    VectorPoint(
                        book_id=str(book_id),
                        reference=fm.reference,
                        title=fm.title,
                        chunk_index=chunk.chunk_index,
                        chunk_text=chunk.text,
                        chapter_idx=chunk.chapter_idx,
                        chapter=chunk.chapter_title or "",
                        authors=fm.authors,
                        tags=fm.tags,
                    ),
                )
                for chunk, vector in zip(chunks, vectors)
            ]
            written = await self._rag_client.do_upsert_points(points)
            self.logging.debug("Indexed %d chunk(s) for %s.", written, fm.reference)
        elif not has_key:
            self.logging.info("No provider key configured: %s stored without summaries or vectors.", fm.reference)
        result.reached = ImportState.INDEXED

    async def _summarize_chapters(self, reference: str, chapters: list[Chapter], has_key: bool) -> list[ChapterSummary]:
        """Chapter summaries to store; empty without a key or when generation fails."""
        if not has_key:
            return []
        try:
            texts = await self._llm_client.do_summarize_chapters(
                [ChapterInput(title=chapter.title, text=chapter.text) for chapter in chapters]
            )
        except ProviderError as exc:
            self.logging.warning("Chapter summaries failed for %s: %s", reference, exc)
            return []
        return [
            ChapterSummary(chapter_idx=idx, title=chapter.title, summary=text)
            for idx, (chapter, text) in enumerate(zip(chapters, texts))
        ]

    ##########################################
    ############### RELOCATION ###############
    ##########################################

    def _relocate(self, path: Path, holding_area: str) -> Path:
        target_dir = path.parent / holding_area
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / path.name
        # an older copy of the same file name is overwritten
        path.replace(target)
        return target

    def _fail(self, path: Path, result: ImportResult, exc: Exception) -> None:
        result.state = ImportState.FAILED
        result.error = str(exc)
        self.logging.error("Failed %s: %s", path.name, exc)
        try:
            self._relocate(path, FAILED_DIR)
        except OSError as move_exc:
            self.logging.error("Could not move %s to %s/: %s", path.name, FAILED_DIR, move_exc)
