"""File tools: upload, listing, info, sharing, analysis, search and message images."""

import base64
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from ..errors import NotFoundError, ValidationError
from ..pagination import PaginatedData, PaginationStrategy, execute_pagination, next_page_cursor
from ..result import ServiceResult
from ..schemas import (
    AnalyzeFilesInput,
    DeleteFileInput,
    GetFileInfoInput,
    GetMessageImagesInput,
    ListFilesInput,
    SearchFilesInput,
    ShareFileInput,
    UploadFileInput,
)
from ..text_utils import days_ago_timestamp, resolve_time_range, timestamp_to_iso
from .base import BaseService

logger = logging.getLogger(__name__)

# ---------- Upload security ----------

MAX_FILE_SIZE_MB = 50
ALLOWED_EXTENSIONS = frozenset(
    {
        ".txt", ".md", ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp",
        ".mp3", ".mp4", ".avi", ".mov", ".wav",
        ".zip", ".tar", ".gz", ".json", ".xml", ".csv",
    }
)
BLOCKED_EXTENSIONS = frozenset(
    {
        ".exe", ".bat", ".cmd", ".scr", ".com", ".pif", ".vbs", ".js", ".jar",
        ".app", ".deb", ".rpm", ".dmg", ".pkg", ".msi",
    }
)
IMAGE_DOWNLOAD_TIMEOUT = 30.0


def check_upload_path(file_path: str) -> int:
    """Reject unsafe, missing, oversized or disallowed files; return the size in bytes.

    Raises:
        ValidationError: describing the first check that failed
    """
    if ".." in file_path or "~" in file_path:
        raise ValidationError("Path traversal detected in file path")
    path = Path(file_path)
    if not path.is_file():
        raise ValidationError(f"File access error: {file_path} does not exist or is not a regular file")

    size = path.stat().st_size
    size_mb = size / (1024 * 1024)
    if size_mb > MAX_FILE_SIZE_MB:
        raise ValidationError(f"File size ({size_mb:.1f}MB) exceeds maximum limit of {MAX_FILE_SIZE_MB}MB")

    extension = path.suffix.lower()
    if extension in BLOCKED_EXTENSIONS:
        raise ValidationError(f"File type '{extension}' is blocked for security reasons")
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"File type '{extension or '(none)'}' is not in the allowed types list")
    return size


def format_file(f: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": f.get("id", ""),
        "name": f.get("name", ""),
        "title": f.get("title", ""),
        "filetype": f.get("filetype", ""),
        "mimetype": f.get("mimetype", ""),
        "size": f.get("size", 0),
        "url": f.get("url_private", ""),
        "downloadUrl": f.get("url_private_download", ""),
        "user": f.get("user", ""),
        "timestamp": f.get("timestamp", f.get("created", 0)),
        "channels": f.get("channels", []),
        "permalink": f.get("permalink", ""),
    }


def file_line(f: dict[str, Any]) -> str:
    try:
        when = timestamp_to_iso(f.get("timestamp") or 0)
    except ValueError:
        when = ""
    uploader = f.get("uploaderDisplayName") or f.get("user") or "unknown"
    return f"{f.get('name', '')} ({f.get('filetype', '')}, {f.get('size', 0)} bytes) by {uploader} at {when}"


class FileService(BaseService):
    """Slack file operations."""

    # swapped in tests for an httpx.AsyncClient bound to a MockTransport
    http_client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient

    async def upload_file(self, args: Any) -> ServiceResult:
        async def op(input: UploadFileInput) -> dict[str, Any]:
            size = check_upload_path(input.file_path)
            channels = input.channels or []
            if len(channels) > 1:
                logger.warning(
                    f"files_upload_v2 shares to a single channel, uploading to {channels[0]} "
                    f"and ignoring {len(channels) - 1} other(s)"
                )
            filename = input.filename or Path(input.file_path).name
            response = await self._write(
                "files_upload_v2",
                file=input.file_path,
                filename=filename,
                title=input.title or filename,
                channel=channels[0] if channels else None,
                initial_comment=input.initial_comment,
                thread_ts=input.thread_ts,
            )
            uploaded = response.get("file") or (response.get("files") or [{}])[0]
            if not uploaded.get("id"):
                raise NotFoundError("Upload completed but Slack returned no file information")
            return {
                "file": {
                    "id": uploaded.get("id", ""),
                    "name": uploaded.get("name", filename),
                    "title": uploaded.get("title", input.title or filename),
                    "size": uploaded.get("size", size),
                    "url": uploaded.get("url_private", ""),
                    "downloadUrl": uploaded.get("url_private_download", ""),
                    "channels": uploaded.get("channels", channels[:1]),
                    "timestamp": uploaded.get("timestamp", 0),
                },
                "uploadedAt": datetime.now(timezone.utc).isoformat(),
            }

        return await self.request_handler.handle(
            UploadFileInput, args, op, success_message="File uploaded successfully",
            error_message="Failed to upload file",
        )

    async def list_files(self, args: Any) -> ServiceResult:
        async def op(input: ListFilesInput) -> dict[str, Any]:
            ts_from, ts_to = resolve_time_range(input.after_date, input.before_date, input.ts_from, input.ts_to)
            first_page = str(input.page)

            async def fetch_page(cursor: str | None) -> Any:
                return await self._read(
                    "files_list",
                    user=input.user,
                    channel=input.channel,
                    types=input.types,
                    ts_from=ts_from,
                    ts_to=ts_to,
                    count=input.count,
                    page=int(cursor or first_page),
                )

            async def format_response(data: PaginatedData) -> dict[str, Any]:
                names = await self.user_service.bulk_get_display_names([f.get("user", "") for f in data.items])
                files = []
                for f in data.items:
                    formatted = format_file(f)
                    formatted["uploaderDisplayName"] = names.get(f.get("user", ""), f.get("user", ""))
                    files.append(formatted)
                return {
                    "files": files,
                    "total": len(files),
                    "pageCount": data.page_count,
                    "pagination": {"hasMore": data.has_more, "nextPage": data.cursor},
                    "formattedFileList": [file_line(f) for f in files],
                }

            return await execute_pagination(
                input,
                PaginationStrategy(
                    fetch_page=fetch_page,
                    get_cursor=next_page_cursor,
                    get_items=lambda r: r.get("files", []),
                    format_response=format_response,
                ),
            )

        return await self.request_handler.handle(
            ListFilesInput, args, op, success_message="Files retrieved successfully",
            error_message="Failed to list files",
        )

    async def get_file_info(self, args: Any) -> ServiceResult:
        async def op(input: GetFileInfoInput) -> dict[str, Any]:
            response = await self._read("files_info", file=input.file_id)
            f = response.get("file")
            if not f:
                raise NotFoundError(f"File {input.file_id} not found")
            result = {"file": format_file(f)}
            if input.include_comments:
                result["comments"] = response.get("comments", [])
            return result

        return await self.request_handler.handle(
            GetFileInfoInput, args, op, success_message="File information retrieved successfully",
            error_message="Failed to get file information",
        )

    async def delete_file(self, args: Any) -> ServiceResult:
        async def op(input: DeleteFileInput) -> dict[str, Any]:
            await self._write("files_delete", file=input.file_id)
            return {"fileId": input.file_id, "deleted": True}

        return await self.request_handler.handle(
            DeleteFileInput, args, op, success_message="File deleted successfully",
            error_message="Failed to delete file",
        )

    async def share_file(self, args: Any) -> ServiceResult:
        async def op(input: ShareFileInput) -> dict[str, Any]:
            info = await self._read("files_info", file=input.file_id)
            f = info.get("file") or {}
            permalink = f.get("permalink")
            if not permalink:
                raise NotFoundError(f"File {input.file_id} has no permalink to share")
            response = await self._write(
                "chat_postMessage", channel=input.channel, text=f"File shared: {permalink}", unfurl_links=True
            )
            return {
                "fileId": input.file_id,
                "channel": input.channel,
                "permalink": permalink,
                "messageTs": response.get("ts", ""),
            }

        return await self.request_handler.handle(
            ShareFileInput, args, op, success_message="File shared successfully",
            error_message="Failed to share file",
        )

    async def analyze_files(self, args: Any) -> ServiceResult:
        async def op(input: AnalyzeFilesInput) -> dict[str, Any]:
            response = await self._read(
                "files_list",
                ts_from=days_ago_timestamp(input.days_back),
                channel=input.channel,
                user=input.user,
                count=1000,
            )
            files = response.get("files", [])
            threshold_bytes = input.size_threshold_mb * 1024 * 1024

            by_type: dict[str, dict[str, int]] = {}
            by_user: dict[str, dict[str, int]] = {}
            large_files = []
            total_size = 0
            for f in files:
                size = f.get("size", 0) or 0
                total_size += size
                for bucket, key in ((by_type, f.get("filetype") or "unknown"), (by_user, f.get("user") or "unknown")):
                    entry = bucket.setdefault(key, {"count": 0, "sizeBytes": 0})
                    entry["count"] += 1
                    entry["sizeBytes"] += size
                if size > threshold_bytes:
                    large_files.append(format_file(f))
            large_files.sort(key=lambda f: f["size"], reverse=True)

            result_analysis: dict[str, Any] = {
                "totalFiles": len(files),
                "totalSizeBytes": total_size,
                "byType": by_type,
                "byUser": by_user,
            }
            if input.include_large_files:
                result_analysis["largeFiles"] = large_files
            return {
                "analysis": result_analysis,
                "summary": (
                    f"File analysis completed for {input.days_back} days: {len(files)} files, {total_size} bytes"
                ),
                "metadata": {
                    "analysisDate": datetime.now(timezone.utc).isoformat(),
                    "periodDays": input.days_back,
                    "thresholdMB": input.size_threshold_mb,
                },
            }

        return await self.request_handler.handle(
            AnalyzeFilesInput, args, op, success_message="File analysis completed successfully",
            error_message="Failed to analyze files",
        )

    async def search_files(self, args: Any) -> ServiceResult:
        async def op(input: SearchFilesInput) -> dict[str, Any]:
            self.client_manager.check_search_api_availability("search_files", "Use list_files with filters instead")

            query = input.query
            if input.types:
                types = [t.strip() for t in input.types.split(",") if t.strip()]
                if len(types) == 1:
                    query += f" filetype:{types[0]}"
                elif types:
                    query += " (" + " OR ".join(f"filetype:{t}" for t in types) + ")"
            if input.channel:
                query += f" in:<#{input.channel}>"
            if input.user:
                query += f" from:<@{input.user}>"
            if input.after:
                query += f" after:{input.after}"
            if input.before:
                query += f" before:{input.before}"

            async def fetch_page(cursor: str | None) -> Any:
                return await self._search(
                    "search_files",
                    "search_files",
                    "Use list_files with filters instead",
                    query=query,
                    count=input.count,
                    page=int(cursor or "1"),
                )

            async def format_response(data: PaginatedData) -> dict[str, Any]:
                files = [format_file(f) for f in data.items]
                return {
                    "results": files,
                    "total": len(files),
                    "query": query,
                    "hasMore": data.has_more,
                    "pageCount": data.page_count,
                }

            return await execute_pagination(
                input,
                PaginationStrategy(
                    fetch_page=fetch_page,
                    get_cursor=lambda r: next_page_cursor(r.get("files") or {}),
                    get_items=lambda r: (r.get("files") or {}).get("matches", []),
                    format_response=format_response,
                ),
            )

        return await self.request_handler.handle(
            SearchFilesInput, args, op, success_message="File search completed successfully",
            error_message="Failed to search files",
        )

    async def get_message_images(self, args: Any) -> ServiceResult:
        async def op(input: GetMessageImagesInput) -> dict[str, Any]:
            response = await self._read(
                "conversations_history", channel=input.channel, latest=input.message_ts, inclusive=True, limit=1
            )
            message = next((m for m in response.get("messages", []) if m.get("ts") == input.message_ts), None)
            if message is None:
                raise NotFoundError(f"Message {input.message_ts} not found in channel {input.channel}")

            images = []
            for f in message.get("files", []):
                if not (f.get("mimetype") or "").startswith("image/"):
                    continue
                images.append(
                    {
                        "id": f.get("id", ""),
                        "name": f.get("name", ""),
                        "mimetype": f.get("mimetype", ""),
                        "filetype": f.get("filetype", ""),
                        "url_private": f.get("url_private", ""),
                        "url_private_download": f.get("url_private_download", ""),
                        "size": f.get("size", 0),
                        "thumb_360": f.get("thumb_360"),
                    }
                )

            if input.include_image_data and images:
                await self._attach_image_data(images)

            return {
                "channel": input.channel,
                "message_ts": input.message_ts,
                "images": images,
                "total_images": len(images),
            }

        return await self.request_handler.handle(
            GetMessageImagesInput, args, op, success_message="Message images retrieved successfully",
            error_message="Failed to get message images",
        )

    async def _attach_image_data(self, images: list[dict[str, Any]]) -> None:
        """Download each image with the bot token and add it Base64-encoded."""
        token = self.client_manager.bot_client.token
        headers = {"Authorization": f"Bearer {token}"}
        async with self.http_client_factory(timeout=IMAGE_DOWNLOAD_TIMEOUT, follow_redirects=True) as http:
            for image in images:
                url = image["url_private_download"] or image["url_private"]
                if not url:
                    continue
                try:
                    resp = await http.get(url, headers=headers)
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning(f"Failed to download image {image['id']}: {e}")
                    image["image_data_error"] = str(e)
                    continue
                image["image_data"] = base64.b64encode(resp.content).decode("ascii")
