"""Resource ordering and StatefulSet storage handling."""
