"""Request context, shared constants and payload types, and trace propagation helpers."""