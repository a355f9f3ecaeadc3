"""Restaurant picker Slack app: weighted draws and votes over a per-channel list."""
