"""Server instructions given to MCP clients."""

BASE_INSTRUCTIONS = """
# Sandbox Container

This server provides access to a sandboxed, ephemeral container with internet access.
The container is an Ubuntu image with curl, git, vim, wget, build-essential, nodejs,
npm, python3 and python3-pip installed, plus the matplotlib, pandas and numpy python
packages.

You are given a working directory in which you can create or delete files and execute
commands. If you're using python, ALWAYS use python3 instead of python. ALWAYS install
dependencies yourself, they are not installed ahead of time.

## Lifecycle

Call `container_initialize` before running any code. It starts (or restarts) your
container. Use `container_ping` to check that it is alive and `container_kill` to
tear it down. Containers idle for 15 minutes are reclaimed. If you cannot connect to
the container, kill and initialize it again. If initialization reports that no
capacity is available, stop and ask the user to try again later.

## Files

Files are addressed as `file://{filepath}` relative to the working directory.

- `container_files_list` lists the working directory tree without contents.
- `container_file_read` returns text files as text and binary files as base64.
  Directories have the mime type `text/directory` and are returned as a newline
  separated list of resource URIs.
- `container_file_write` creates or overwrites a file.
- `container_file_delete` deletes a file or directory.

Prefer these tools over reading or writing files through `container_exec`.

## Commands

`container_exec` runs a shell command and returns its stdout (and stderr unless
disabled), followed by a `Process exited with code: N` line.
"""
