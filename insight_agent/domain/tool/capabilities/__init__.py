# One module per capability kind. Each exposes a DESCRIPTOR and a handler
# class whose instances are awaited with the raw arguments dict.
