"""Constants for llmbench."""

import os
from pathlib import Path

# Remote inference endpoint
# Precedence: config file < OLLAMA_API_URL env var < CLI --url
DEFAULT_OLLAMA_URL = os.environ.get("OLLAMA_API_URL", "http://localhost:11434")
GENERATE_PATH = "/api/generate"
TAGS_PATH = "/api/tags"
EVALUATION_PROMPT = "Write a short paragraph about artificial intelligence."

# Storage
DEFAULT_DB_PATH = Path(os.environ.get("LLMBENCH_DB_PATH", "benchmark_data.db"))
DEFAULT_CSV_PATH = Path(os.environ.get("LLMBENCH_CSV_PATH", "benchmark_results.csv"))

# Timeouts and bounds
REMOTE_TIMEOUT_SEC = 120.0
CONTAINER_TIMEOUT_SEC = 300.0
PROBE_TIMEOUT_SEC = 10.0
TOOLBOX_CREATE_TIMEOUT_SEC = 1800.0
MAX_OUTPUT_BYTES = 10 * 1024 * 1024
GRACEFUL_SHUTDOWN_TIMEOUT_SEC = 2

# Rates below this duration are reported as 0 rather than divided
MIN_DURATION_SEC = 1e-9

# llama-bench defaults for container backends
DEFAULT_TOOLBOX = os.environ.get("LLMBENCH_TOOLBOX", "llama-rocm-7.2")
DEFAULT_GPU_LAYERS = 99
DEFAULT_CONTEXT_SIZE = 8192
ROCM_BENCH_BINARY = "/usr/local/bin/llama-bench"
VULKAN_BENCH_BINARY = "/usr/sbin/llama-bench"
TOOLBOX_IMAGE_REPOSITORY = "docker.io/kyuz0/amd-strix-halo-toolboxes"

# Sentinel GPU entries for snapshots
NO_GPU_DETECTED = "No GPU detected"
GPU_UNDETECTABLE = "Unable to detect GPU"

# Models benchmarked when `llmbench run` is given no arguments
DEFAULT_MODELS: list[str] = [
    "gemma3:270m",
    "qwen3:0.6b",
    "gemma3:1b",
    "deepseek-r1:1.5b",
    "llama3.2:1b",
    "qwen3:1.7b",
    "qwen3-vl:2b",
    "llama3.2:3b",
    "qwen3:4b",
    "gemma3:4b",
    "qwen3-vl:4b",
    "deepseek-r1:7b",
    "llama3.1:8b",
    "deepseek-r1:8b",
    "qwen3:8b",
    "qwen3-vl:8b",
    "gemma3:12b",
    "deepseek-r1:14b",
    "qwen3:14b",
    "gpt-oss:20b",
    "gemma3:27b",
    "qwen3-coder:latest",
    "qwen3-coder:30b",
    "qwen3:30b",
    "deepseek-r1:32b",
    "qwen3:32b",
    "qwen3-vl:30b",
    "qwen3-vl:32b",
    "deepseek-r1:70b",
    "llama3.1:70b",
    "gpt-oss:120b",
    "llama4:16x17b",
    "GLM-4.6:TQ1_0",
    "qwen3:235b",
    "qwen3-vl:235b",
    "GLM-4.6:Q4_K_M",
    "llama3.1:405b",
    "llama4:128x17b",
    "qwen3-coder:480b",
    "deepseek-v3.1:671b",
    "deepseek-r1:671b",
    "minmax m2",
]

# CSV export
CSV_HEADER = [
    "Model",
    "Tokens Per Second",
    "Total Tokens",
    "Duration (s)",
    "Timestamp",
    "Status",
]
