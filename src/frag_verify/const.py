ERRORS = {
  "E_SIZE_SHORT": "Fragment smaller than CRT header",
  "E_SIZE_MISMATCH": "Fragment size does not match header hit count",
  "E_HEADER_MAGIC": "CRT header magic is not 'M'",
  "E_HEADER_NHIT": "CRT header hit count out of range",
  "E_HEADER_TIME": "CRT header unix time predates deployment",
  "E_HIT_MAGIC": "CRT hit magic is not 'H'",
  "E_HIT_CHANNEL": "CRT hit channel out of range",
  "E_HIT_ADC": "CRT hit ADC value out of range",
}
