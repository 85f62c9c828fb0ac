# Fixed storage namespace for the persisted gallery blob.
GALLERY_STORAGE_KEY = "mzaFaceRecognitionDatabase"

# Default directory for the file-backed key-value store.
DEFAULT_STORAGE_DIR = "data/storage"

# Label returned when no gallery face matches.
UNKNOWN_LABEL = "unknown"

# Expression labels in scoring order (ties in the top label resolve to the later one).
EXPRESSION_LABELS = ("happy", "sad", "angry", "surprised", "fearful", "disgusted", "neutral")

# Landmark index layout every detector must honor for its first six points.
CANONICAL_LANDMARKS = ("left_eye", "right_eye", "nose", "left_mouth", "right_mouth", "chin")

# Font candidates for Unicode names on the preview window, tried in order.
FONT_LIST = [
    # macOS
    "/System/Library/Fonts/Supplemental/Arial Unicode.ttf",
    "/Library/Fonts/Arial Unicode.ttf",
    "/System/Library/Fonts/STHeiti Medium.ttc",
    # Windows
    "C:\\Windows\\Fonts\\arialuni.ttf",
    "C:\\Windows\\Fonts\\msyh.ttc",
    "C:\\Windows\\Fonts\\segoeui.ttf",
    # Linux: CJK-capable fonts first, otherwise DejaVuSans wins and non-latin names render as boxes.
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-zenhei.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
]
