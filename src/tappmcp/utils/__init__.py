# Shared utilities: configuration, constants, errors and helpers
