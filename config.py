import os


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DB_URL",
        "sqlite:///" + os.path.join(os.path.dirname(os.path.abspath(__file__)), "stocksync.db"),
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
    # Full-collection pushes resend everything, photos included.
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", 50 * 1024 * 1024))
    LOG_DIR = os.getenv("STOCKSYNC_SERVER_LOG_DIR", "")
