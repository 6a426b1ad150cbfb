"""Buffer pooling, gzip compression, conversion and network helpers."""