"""Object storage backends for story media."""
