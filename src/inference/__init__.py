"""
Inference engines, preprocessing and model loading.
"""
