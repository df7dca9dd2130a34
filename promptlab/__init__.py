"""PromptLab core -- prompt expansion, endpoint invocation, and chat sessions.

Module Overview
---------------
**placeholders.py**
    Placeholder resolution. Keyed substitutions from a context mapping,
    then an ordered registry of structured handlers (AppleScript, shell,
    URL, file).

**replacements.py**
    The default keyed substitution context (date, user, selected files...).

**file_context.py**
    Descriptive text blocks for selected files.

**key_path.py**
    Dotted/bracketed key-path lookups into decoded JSON responses.

**endpoint.py**
    ``EndpointConfig`` plus request body and header construction.

**native.py**
    Built-in assistant backends (OpenAI-compatible streaming).

**invoker.py**
    ``EndpointInvoker`` -- built-in, synchronous HTTP, and streamed HTTP
    branches, yielding ``results.py`` values.

**session.py**
    ``ConversationSession`` -- history, budget trimming, cancel/regenerate,
    and the stale-result guard.

**errors.py**
    The error taxonomy.

**config_validator.py**
    Pre-flight checks for an endpoint configuration.

Architecture
------------
1. **Explicit configuration**: every invocation receives its
   ``EndpointConfig``; nothing here reads settings from the environment.

2. **Failures as values**: invocation problems are yielded as ``Failed``
   results and placeholder problems degrade to empty text, so nothing in
   the core takes the host process down.

3. **No circular imports**: modules depend on ``promptlab_constants`` and
   on modules listed above them, never on the CLI.
"""
