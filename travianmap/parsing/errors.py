class DumpFormatError(Exception):
    pass
