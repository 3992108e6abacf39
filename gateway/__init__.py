"""HTTP gateway forwarding events to the stream and queries to the cluster."""
