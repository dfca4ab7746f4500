class ThumbnailError(Exception):
    pass
