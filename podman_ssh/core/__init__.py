"""Core SSH and API plumbing for podman-ssh."""
