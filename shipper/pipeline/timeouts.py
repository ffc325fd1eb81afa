from __future__ import annotations

# Toolchain setup (apt-get, rustup target add)
TOOLCHAIN_TIMEOUT_SECONDS = 10 * 60.0

# cargo build --release
COMPILE_TIMEOUT_SECONDS = 60 * 60.0

STRIP_TIMEOUT_SECONDS = 60.0

# cargo update
CARGO_METADATA_TIMEOUT_SECONDS = 5 * 60.0

# gh release view / create (create uploads every archive)
GH_TIMEOUT_SECONDS = 60.0
GH_UPLOAD_TIMEOUT_SECONDS = 30 * 60.0
