"""Turn study material (files, web pages, video transcripts, pasted text) into plain text."""
import json
import logging
import re
from pathlib import Path

import requests
import yt_dlp
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

MAX_MATERIAL_CHARS = 25000
MIN_PAGE_TEXT_CHARS = 100
FETCH_TIMEOUT = 10
FETCH_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; stade/0.1)",
    "Accept": "text/html,application/xhtml+xml,*/*",
    "Accept-Language": "en-US,en;q=0.9",
}
VIDEO_ID_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([A-Za-z0-9_-]{11})"),
    re.compile(r"^([A-Za-z0-9_-]{11})$"),
)
CAPTION_LANGUAGES = ("en", "en-US", "en-GB")


class MaterialError(Exception):
    """Study material could not be read or contained no usable text."""


def prepare_material(text: str) -> str:
    """Collapse runs of blank lines and cap the length sent for generation."""
    text = re.sub(r"\n\s*\n\s*\n+", "\n\n", text).strip()
    if not text:
        raise MaterialError("No content provided")
    return text[:MAX_MATERIAL_CHARS]


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "nav", "header", "footer"]):
        tag.decompose()
    return soup.get_text("\n")


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md"):
        return path.read_text()
    elif suffix == ".json":
        data = json.loads(path.read_text())
        return json.dumps(data, indent=2) if isinstance(data, dict) else str(data)
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
        return str(data)
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    elif suffix in (".html", ".htm"):
        return html_to_text(path.read_text())
    else:
        # Transcripts and other notes are usually plain text
        return path.read_text()


def import_file(file_path: str) -> str:
    """Read a file and return material ready for generation."""
    if not Path(file_path).exists():
        raise MaterialError(f"File not found: {file_path}")
    content = read_file_content(file_path)
    logger.info("Imported %s (%d chars)", Path(file_path).name, len(content))
    return prepare_material(content)


def fetch_url_text(url: str) -> str:
    """Download a web page and return its readable text."""
    url = url.strip()
    if not url:
        raise MaterialError("No URL provided")
    if not url.startswith("http"):
        url = "https://" + url
    try:
        response = requests.get(url, headers=FETCH_HEADERS, timeout=FETCH_TIMEOUT)
    except requests.RequestException as e:
        logger.warning("Fetching %s failed: %s", url, e)
        raise MaterialError("Couldn't reach that URL. Try copying the text instead.") from e
    if not response.ok:
        raise MaterialError(f"Couldn't fetch that page ({response.status_code}). Try pasting the text instead.")
    content_type = response.headers.get("content-type", "")
    if "text/html" in content_type:
        text = html_to_text(response.text)
    elif "text/plain" in content_type:
        text = response.text
    else:
        raise MaterialError("That URL doesn't contain readable text.")
    text = re.sub(r"[ \t]+", " ", text)
    if len(text.strip()) < MIN_PAGE_TEXT_CHARS:
        raise MaterialError("Not enough text found on that page.")
    return prepare_material(text)


def extract_video_id(text: str) -> str | None:
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(text.strip())
        if match:
            return match.group(1)
    return None


def _pick_caption_track(tracks: dict) -> list | None:
    """English captions if there are any, otherwise whatever language comes first."""
    for lang in CAPTION_LANGUAGES:
        if lang in tracks:
            return tracks[lang]
    if tracks:
        return next(iter(tracks.values()))
    return None


def vtt_to_text(vtt: str) -> str:
    """Caption text from a WebVTT file, without cue timings or repeated lines."""
    lines = []
    for line in vtt.splitlines():
        line = re.sub(r"<[^>]+>", "", line).strip()
        if not line or "-->" in line or line.isdigit():
            continue
        if line.startswith(("WEBVTT", "Kind:", "Language:", "NOTE")):
            continue
        # auto captions repeat the previous cue's line
        if lines and lines[-1] == line:
            continue
        lines.append(line)
    return " ".join(lines)


def fetch_transcript_text(url: str) -> str:
    """Download a YouTube video's captions and return them as material."""
    video_id = extract_video_id(url)
    if not video_id:
        raise MaterialError("Could not find a valid YouTube video ID in that URL.")
    ydl_opts = {
        "quiet": True,
        "no_warnings": True,
        "skip_download": True,
        "socket_timeout": FETCH_TIMEOUT,
    }
    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(f"https://www.youtube.com/watch?v={video_id}", download=False)
    except yt_dlp.utils.DownloadError as e:
        logger.warning("Looking up video %s failed: %s", video_id, e)
        raise MaterialError("No transcript available for this video. Try a video with captions enabled.") from e

    # Prefer human subtitles over automatic captions
    track = (_pick_caption_track(info.get("subtitles") or {})
             or _pick_caption_track(info.get("automatic_captions") or {}))
    if not track:
        raise MaterialError("No transcript available for this video. Try a video with captions enabled.")
    caption_url = next((t.get("url") for t in track if t.get("ext") == "vtt"), None)
    if not caption_url:
        raise MaterialError("No readable captions found for this video.")

    try:
        response = requests.get(caption_url, timeout=FETCH_TIMEOUT)
    except requests.RequestException as e:
        logger.warning("Fetching captions for %s failed: %s", video_id, e)
        raise MaterialError("Couldn't download the transcript. Try again later.") from e
    if not response.ok:
        raise MaterialError(f"Couldn't download the transcript ({response.status_code}).")
    text = vtt_to_text(response.text)
    if not text:
        raise MaterialError("Transcript was empty. This video may not have captions.")
    logger.info("Imported transcript for video %s (%d chars)", video_id, len(text))
    return prepare_material(text)
