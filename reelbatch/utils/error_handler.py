"""Error Handler - provides user-friendly error messages and remediation hints."""

from typing import Optional

from reelbatch.core.exceptions import (
    AccessDenied,
    CompositionError,
    DownloadFailed,
    NotFound,
    OperationTimeout,
    UnresolvableReference,
    UnsupportedCombination,
)


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a user-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Rendering row 5")
        error: The exception that occurred
        context: Additional context (e.g., {"row_index": 5, "file_name": "clip.mp4"})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__
    error_msg = str(error)

    # Build context string
    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    # Build message
    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error_msg}"

    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"

    return message


def get_fallback_suggestion(service: str, error: Exception) -> Optional[str]:
    """
    Get a suggestion for how to handle a service failure.

    Args:
        service: Service name ("Download", "Composition", "Render", "Publish", "Write-back")
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if service == "Download":
        if isinstance(error, DownloadFailed) and error.failures:
            return "Check every listed link; the row is retried on the next run while its marker stays set."
        if isinstance(error, UnresolvableReference):
            return "Use a Google Drive share link (https://drive.google.com/file/d/<id>/view) or a bare file id."
        elif isinstance(error, AccessDenied):
            return "Change the file's sharing setting to 'Anyone with the link'."
        elif isinstance(error, NotFound):
            return "The file does not exist or was deleted. Check the link in the sheet."
        elif isinstance(error, OperationTimeout) or "timeout" in error_msg:
            return "Download timed out. Large files may need a higher DOWNLOAD_TIMEOUT_SECONDS."
        else:
            return "Download failed. Check your internet connection and the link in the sheet."

    elif service == "Composition":
        if isinstance(error, UnsupportedCombination):
            return "Provide a background video (optionally with image/audio) or an audio file on its own."
        elif isinstance(error, CompositionError):
            return "Check the duration, colour (#RRGGBB) and opacity cells for this row."
        return None

    elif service == "Render":
        if isinstance(error, OperationTimeout):
            return "Rendering exceeded RENDER_TIMEOUT_SECONDS. Shorten the duration or raise the limit."
        elif "invalid data" in error_msg or "could not" in error_msg:
            return "One of the input files is not a valid media file. Re-upload it and try again."
        else:
            return "Rendering failed. Check logs for encoder diagnostics."

    elif service == "Publish":
        if "oauth" in error_msg or "credential" in error_msg or "401" in error_msg:
            return "Google authentication failed. Check GOOGLE_CONFIG or re-run the OAuth flow."
        elif "403" in error_msg or "permission" in error_msg:
            return "The service account cannot write to the target folder. Share it with the account."
        elif "network" in error_msg or "timeout" in error_msg:
            return "Network error during upload. The rendered video is kept locally."
        else:
            return "Upload failed. The rendered video is kept locally. Check logs for details."

    elif service == "Write-back":
        return "The sheet was not updated. Clear the execution marker manually or configure GOOGLE_CONFIG."

    return None
