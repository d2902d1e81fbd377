"""Version of the securityspy client, shown by --version and sent as User-Agent."""

VERSION = "0.1.0"
# 0 for releases, commit count for development builds.
BUILD_NUMBER = "0"

FULL_VERSION = f"{VERSION}+{BUILD_NUMBER}"

USER_AGENT = f"securityspy-python/{VERSION}"
