"""Plugins for aliases, access lists, rate limits, teeing, metrics and service registries."""