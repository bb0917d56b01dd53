import logging
import os
import tempfile

from PIL import Image, ImageDraw, ImageFont

from country_xchange.config import Config

logger = logging.getLogger(__name__)

IMAGE_SIZE = (800, 600)
SUMMARY_IMAGE_NAME = "summary.png"
NO_DATA_TEXT = "No GDP data available"

_FONT_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"
_FONT_REGULAR = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"


def summary_image_path():
    return os.path.join(Config.cache_dir, SUMMARY_IMAGE_NAME)


def _load_fonts():
    try:
        title_font = ImageFont.truetype(_FONT_BOLD, 32)
        header_font = ImageFont.truetype(_FONT_BOLD, 22)
        text_font = ImageFont.truetype(_FONT_REGULAR, 18)
    except OSError:
        # Fallback if system fonts aren't installed
        title_font = header_font = text_font = ImageFont.load_default()
    return title_font, header_font, text_font


def format_country_line(rank, country):
    return f"{rank}. {country.name} - {country.estimated_gdp:,.2f}"


def render_summary_image(total_count, top_countries, timestamp):
    """Draw the summary card for a refresh and return it as a Pillow image."""
    img = Image.new("RGB", IMAGE_SIZE, color="white")
    draw = ImageDraw.Draw(img)
    title_font, header_font, text_font = _load_fonts()

    y_position = 40
    draw.text((50, y_position), "Countries Summary", fill="black", font=title_font)
    y_position += 60

    draw.text(
        (50, y_position),
        f"Total countries: {total_count}",
        fill="black",
        font=header_font,
    )
    y_position += 40

    refreshed = timestamp.strftime("%Y-%m-%d %H:%M:%S UTC") if timestamp else "Never"
    draw.text(
        (50, y_position), f"Last refreshed at: {refreshed}", fill="gray", font=text_font
    )
    y_position += 50

    draw.text(
        (50, y_position), "Top 5 by estimated GDP:", fill="black", font=header_font
    )
    y_position += 40

    if not top_countries:
        draw.text((70, y_position), NO_DATA_TEXT, fill="gray", font=text_font)
    for rank, country in enumerate(top_countries[:5], 1):
        draw.text(
            (70, y_position),
            format_country_line(rank, country),
            fill="black",
            font=text_font,
        )
        y_position += 35

    return img


def generate_summary_image(total_count, top_countries, timestamp):
    """Render the summary and atomically replace the cached PNG. Returns its path."""
    os.makedirs(Config.cache_dir, exist_ok=True)
    image_path = summary_image_path()
    img = render_summary_image(total_count, top_countries, timestamp)

    fd, tmp_path = tempfile.mkstemp(suffix=".png", dir=Config.cache_dir)
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            img.save(tmp_file, format="PNG")
        os.replace(tmp_path, image_path)
    except Exception:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    logger.info("Generated summary image at %s", image_path)
    return image_path
