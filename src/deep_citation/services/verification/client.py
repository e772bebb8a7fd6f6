"""Client for the DeepCitation upload and verification API.

Uploads go through a fixed-width pool shared by every upload on the
client. Verification requests are coalesced by content: concurrent calls
that would send the same attachment and the same citations share one
HTTP request, whatever labels each caller used for its citations.
"""

import asyncio
import io
import os
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

import httpx
from pydantic import BaseModel

from deep_citation.core.app_config import get_app_config
from deep_citation.core.config import get_settings
from deep_citation.core.exceptions import (
    ConfigurationError,
    ConversionError,
    InvalidInputError,
    UploadError,
    VerificationError,
)
from deep_citation.core.logging_utils import (
    get_logger,
    log_request_coalesced,
    log_upload_error,
    log_upload_request,
    log_upload_response,
    log_verification_error,
    log_verification_request,
    log_verification_response,
)
from deep_citation.schemas.attachment import (
    ConvertFileResponse,
    FileDataPart,
    FileInput,
    UploadFileResponse,
)
from deep_citation.schemas.citation import Citation, coerce_citation
from deep_citation.schemas.verification import VerifyCitationsResponse
from deep_citation.services.citation.citation_keys import (
    canonical_json,
    fingerprint_verification_request,
    generate_citation_key,
)
from deep_citation.services.citation.extractor import (
    get_all_citations,
    group_citations_by_attachment_id,
)
from deep_citation.services.verification.inflight import InFlightRegistry

logger = get_logger(__name__)

WarningHook = Callable[[str], None]
LabelledCitations = dict[str, Citation]


def citation_payload(citation: Citation) -> dict[str, Any]:
    """Wire form of a citation for the verification call."""
    payload = citation.to_wire()
    payload.pop("kind", None)
    return {key: value for key, value in payload.items() if value != []}


def _content(citation: Citation) -> str:
    return canonical_json(citation.to_wire())


class DeepCitationClient:
    """Async client for the DeepCitation API.

    Args:
        api_key: API key. ``None`` falls back to ``DEEPCITATION_API_KEY``.
        api_url: Base URL; a trailing slash is removed.
        max_upload_concurrency: Uploads allowed in flight at once.
        timeout: Request timeout in seconds for the owned HTTP client.
        output_image_format: Evidence image format requested on verification.
        http_client: Client to send requests with. The caller keeps
            ownership; it is not closed by ``close()``.
        on_warning: Called with a message for recoverable anomalies.

    Raises:
        ConfigurationError: If no API key is available or the concurrency
            width is not positive.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        max_upload_concurrency: int | None = None,
        *,
        timeout: float | None = None,
        output_image_format: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        on_warning: WarningHook | None = None,
    ):
        settings = get_settings()

        if api_key is None:
            api_key = settings.deepcitation_api_key
        if not api_key or not api_key.strip():
            raise ConfigurationError(
                "DeepCitation API key is required. Pass api_key or set DEEPCITATION_API_KEY.",
                setting="api_key",
            )

        width = max_upload_concurrency
        if width is None:
            width = settings.deepcitation_max_upload_concurrency
        if width < 1:
            raise ConfigurationError(
                f"max_upload_concurrency must be at least 1, got {width}",
                setting="max_upload_concurrency",
            )

        self._api_key = api_key
        self.api_url = (api_url or settings.deepcitation_api_url).rstrip("/")
        self.max_upload_concurrency = width
        self.output_image_format = (
            output_image_format or get_app_config().client.output_image_format.value
        )
        self._on_warning = on_warning

        self._upload_semaphore = asyncio.Semaphore(width)
        self._inflight: InFlightRegistry[tuple[LabelledCitations, VerifyCitationsResponse]] = (
            InFlightRegistry()
        )

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout or settings.deepcitation_request_timeout,
            headers={"Accept": "application/json"},
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _warn(self, message: str) -> None:
        logger.warning("DEEPCITATION_WARNING", detail=message)
        if self._on_warning is not None:
            self._on_warning(message)

    async def __aenter__(self) -> "DeepCitationClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    # Uploads

    @staticmethod
    def _read_payload(file: Any, filename: str | None = None) -> tuple[bytes, str | None]:
        """Return the bytes to upload and the filename to send.

        Raises:
            InvalidInputError: If ``file`` is not bytes or a binary file object.
        """
        if isinstance(file, bytes | bytearray | memoryview):
            return bytes(file), filename

        if hasattr(file, "read") and not isinstance(file, io.TextIOBase):
            content = file.read()
            if isinstance(content, bytes | bytearray):
                name = getattr(file, "name", None)
                if filename is None and isinstance(name, str):
                    filename = os.path.basename(name)
                return bytes(content), filename

        raise InvalidInputError(
            f"Invalid file type {type(file).__name__}. Expected bytes or a binary file object.",
            field="file",
        )

    async def upload_file(
        self,
        file: Any,
        *,
        filename: str | None = None,
        attachment_id: str | None = None,
    ) -> UploadFileResponse:
        """Upload one file for text extraction.

        Args:
            file: ``bytes``, ``bytearray``, ``memoryview`` or a file opened in
                binary mode.
            filename: Name reported to the service.
            attachment_id: Custom id for the attachment; the service assigns
                one otherwise.

        Raises:
            InvalidInputError: Before any request, if ``file`` is not binary.
            UploadError: If the service rejects the upload.
        """
        content, filename = self._read_payload(file, filename)
        return await self._upload(content, filename, attachment_id)

    async def _upload(
        self,
        content: bytes,
        filename: str | None,
        attachment_id: str | None,
    ) -> UploadFileResponse:
        form: dict[str, str] = {}
        if filename:
            form["filename"] = filename
        if attachment_id:
            form["attachmentId"] = attachment_id

        async with self._upload_semaphore:
            log_upload_request(logger, filename=filename, byte_size=len(content), attachment_id=attachment_id)
            start = time.perf_counter()
            try:
                response = await self._client.post(
                    f"{self.api_url}/prepareFile",
                    headers=self._headers,
                    files={"file": (filename or "file", content)},
                    data=form,
                )
            except httpx.RequestError as e:
                log_upload_error(logger, filename=filename, error=e)
                raise

        if response.is_error:
            error = UploadError.from_response(response)
            log_upload_error(logger, filename=filename, error=error, status_code=response.status_code)
            raise error

        result = UploadFileResponse.model_validate(response.json())
        log_upload_response(
            logger,
            attachment_id=result.attachment_id,
            duration_ms=(time.perf_counter() - start) * 1000,
            page_count=result.metadata.page_count if result.metadata else None,
        )
        return result

    @staticmethod
    def _file_input(item: Any) -> FileInput:
        if isinstance(item, FileInput):
            return item
        if isinstance(item, Mapping):
            return FileInput(
                file=item.get("file"),
                filename=item.get("filename"),
                attachment_id=item.get("attachment_id", item.get("attachmentId")),
            )
        return FileInput(file=item)

    async def prepare_files(self, files: Sequence[FileInput | Mapping[str, Any] | bytes]) -> list[FileDataPart]:
        """Upload several files through the upload pool.

        Results are in input order. Every payload is checked before the
        first upload starts. The first failure is raised; uploads that
        already finished are kept by the service.
        """
        if not files:
            return []

        inputs = [self._file_input(item) for item in files]
        payloads = [self._read_payload(item.file, item.filename) for item in inputs]
        results: list[FileDataPart | None] = [None] * len(inputs)

        async def upload_into(index: int) -> None:
            content, filename = payloads[index]
            response = await self._upload(content, filename, inputs[index].attachment_id)
            metadata_name = response.metadata.filename if response.metadata else None
            results[index] = FileDataPart(
                attachment_id=response.attachment_id,
                extracted_text_portion=response.extracted_text_portion,
                filename=filename or metadata_name,
            )

        await asyncio.gather(*(upload_into(i) for i in range(len(inputs))))
        return [part for part in results if part is not None]

    async def convert_to_pdf(
        self,
        url: str | None = None,
        *,
        file: Any = None,
        filename: str | None = None,
        attachment_id: str | None = None,
    ) -> ConvertFileResponse:
        """Convert a web page or an office file to PDF on the service.

        Follow with ``prepare_converted_file`` to extract its text.
        """
        if (url is None) == (file is None):
            raise InvalidInputError("Provide exactly one of url or file", field="url")

        if url is not None:
            body = {"url": url, "filename": filename, "attachmentId": attachment_id}
            response = await self._client.post(
                f"{self.api_url}/convertFile",
                headers=self._headers,
                json={k: v for k, v in body.items() if v is not None},
            )
        else:
            content, filename = self._read_payload(file, filename)
            form = {"attachmentId": attachment_id, "filename": filename}
            response = await self._client.post(
                f"{self.api_url}/convertFile",
                headers=self._headers,
                files={"file": (filename or "file", content)},
                data={k: v for k, v in form.items() if v},
            )

        if response.is_error:
            raise ConversionError.from_response(response)
        return ConvertFileResponse.model_validate(response.json())

    async def prepare_converted_file(self, attachment_id: str) -> UploadFileResponse:
        """Extract text from a file previously converted with ``convert_to_pdf``."""
        response = await self._client.post(
            f"{self.api_url}/prepareFile",
            headers=self._headers,
            json={"attachmentId": attachment_id},
        )
        if response.is_error:
            raise UploadError.from_response(response)
        return UploadFileResponse.model_validate(response.json())

    # Verification

    @staticmethod
    def _label_citations(citations: Mapping[str, Any] | Iterable[Any]) -> LabelledCitations:
        if isinstance(citations, BaseModel):
            citations = [citations]
        if isinstance(citations, Mapping):
            return {str(label): coerce_citation(c) for label, c in citations.items()}
        labelled: LabelledCitations = {}
        for item in citations:
            citation = coerce_citation(item)
            labelled[generate_citation_key(citation)] = citation
        return labelled

    async def verify_attachment(
        self,
        attachment_id: str,
        citations: Mapping[str, Any] | Iterable[Any],
        *,
        output_image_format: str | None = None,
    ) -> VerifyCitationsResponse:
        """Verify citations against one attachment.

        Args:
            attachment_id: Attachment the citations point into.
            citations: Citations keyed by any label, or a sequence (keyed by
                citation key). Values may be Citation models or dicts.
            output_image_format: Overrides the client's evidence image format.

        Returns:
            Verifications keyed by the labels given here. Callers that join
            an identical outstanding request get its result under their own
            labels.

        Raises:
            VerificationError: If the service rejects the request. Every
                caller sharing the request gets the same error.
        """
        labelled = self._label_citations(citations)
        if not labelled:
            return VerifyCitationsResponse()

        image_format = output_image_format or self.output_image_format
        fingerprint = fingerprint_verification_request(attachment_id, labelled.values(), image_format)

        issued, response = await self._inflight.run(
            fingerprint,
            lambda: self._post_verification(attachment_id, labelled, image_format, fingerprint),
            on_join=lambda: log_request_coalesced(
                logger, attachment_id=attachment_id, fingerprint=fingerprint[:16]
            ),
        )
        return self._relabel(response, issued, labelled)

    async def _post_verification(
        self,
        attachment_id: str,
        labelled: LabelledCitations,
        image_format: str,
        fingerprint: str,
    ) -> tuple[LabelledCitations, VerifyCitationsResponse]:
        log_verification_request(
            logger,
            attachment_id=attachment_id,
            citation_count=len(labelled),
            fingerprint=fingerprint[:16],
            in_flight=len(self._inflight),
        )
        body = {
            "data": {
                "attachmentId": attachment_id,
                "citations": {label: citation_payload(c) for label, c in labelled.items()},
                "outputImageFormat": image_format,
            }
        }
        start = time.perf_counter()
        try:
            response = await self._client.post(
                f"{self.api_url}/verifyCitations",
                headers=self._headers,
                json=body,
            )
        except httpx.RequestError as e:
            log_verification_error(logger, attachment_id=attachment_id, error=e)
            raise

        if response.is_error:
            error = VerificationError.from_response(response)
            log_verification_error(
                logger, attachment_id=attachment_id, error=error, status_code=response.status_code
            )
            raise error

        result = VerifyCitationsResponse.model_validate(response.json())
        log_verification_response(
            logger,
            attachment_id=attachment_id,
            statuses=[v.status.value if v.status else "unresolved" for v in result.verifications.values()],
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        return labelled, result

    @staticmethod
    def _relabel(
        response: VerifyCitationsResponse,
        issued: LabelledCitations,
        wanted: LabelledCitations,
    ) -> VerifyCitationsResponse:
        """Re-key a shared response onto another caller's labels by content."""
        if issued is wanted or issued == wanted:
            return response

        label_by_content: dict[str, str] = {}
        for label, citation in issued.items():
            label_by_content.setdefault(_content(citation), label)

        verifications = {}
        for label, citation in wanted.items():
            issued_label = label_by_content.get(_content(citation))
            if issued_label is not None and issued_label in response.verifications:
                verifications[label] = response.verifications[issued_label]
        return response.model_copy(update={"verifications": verifications})

    async def verify_all(
        self,
        llm_output: Any,
        *,
        output_image_format: str | None = None,
    ) -> VerifyCitationsResponse:
        """Verify every citation found in model output.

        Citations are grouped by attachment and each group is verified
        concurrently. Verifications are keyed by citation key.
        """
        grouped = group_citations_by_attachment_id(get_all_citations(llm_output))
        orphans = grouped.pop("", None)
        if orphans:
            self._warn(f"Skipping {len(orphans)} citation(s) without an attachment_id")
        if not grouped:
            return VerifyCitationsResponse()

        responses = await asyncio.gather(
            *(
                self.verify_attachment(attachment_id, group, output_image_format=output_image_format)
                for attachment_id, group in grouped.items()
            )
        )
        merged = {}
        for response in responses:
            merged.update(response.verifications)
        return VerifyCitationsResponse(verifications=merged)
