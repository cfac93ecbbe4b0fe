"""Chain access: ABIs, log decoding and node clients."""
