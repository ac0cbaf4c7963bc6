from __future__ import annotations

# Toolchain setup (rustup target add, apt-get install)
TOOLCHAIN_TIMEOUT_SECONDS = 20 * 60.0

# cargo set-version, cbindgen
METADATA_TIMEOUT_SECONDS = 5 * 60.0

# cargo build / maturin build
COMPILE_TIMEOUT_SECONDS = 90 * 60.0
PACKAGE_TIMEOUT_SECONDS = 90 * 60.0

# Code signing script
SIGN_TIMEOUT_SECONDS = 10 * 60.0

# gh release view/create
GH_TIMEOUT_SECONDS = 60.0
# gh release upload (archives carry the model data)
GH_UPLOAD_TIMEOUT_SECONDS = 30 * 60.0

# Idempotent GH read retry policy (uploads are never retried)
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0
