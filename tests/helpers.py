import struct
import zlib
from io import BytesIO

from PIL import Image

# neighbouring luminances 0.80 and 0.62: edges everywhere, no rough texture
RINGED_LEAF = ((150, 240, 150), (100, 200, 100))
# 0.53 against 0.20: edges plus rough texture
ROUGH_LEAF = ((40, 200, 40), (10, 80, 10))


def image_bytes(img, fmt="PNG"):
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def checkerboard(light=RINGED_LEAF[0], dark=RINGED_LEAF[1], size=224):
    """Pixel-level alternating greens: plant-coloured and full of edges."""
    img = Image.new("RGB", (size, size))
    img.putdata([light if (x + y) % 2 == 0 else dark for y in range(size) for x in range(size)])
    return img


def skin_photo(size=224, skin_rows=90):
    img = Image.new("RGB", (size, size), (40, 160, 40))
    img.paste((224, 172, 140), (0, 0, size, skin_rows))
    return img


def oversized_png(width=20000, height=20000):
    """A bare PNG header declaring far more pixels than Pillow will open."""
    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    chunk = b"IHDR" + header
    return (
        b"\x89PNG\r\n\x1a\n"
        + struct.pack(">I", len(header))
        + chunk
        + struct.pack(">I", zlib.crc32(chunk) & 0xFFFFFFFF)
    )
