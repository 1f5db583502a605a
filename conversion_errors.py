#!/usr/bin/env python3
"""
변환 파이프라인 단계별 예외 정의

각 단계(decode / fit / quantize / encode)는 실패 시 ConversionError 계열 예외를 던진다.
배치 처리 쪽에서는 ConversionError 하나만 잡으면 이미지 단위로 격리할 수 있다.
"""


class ConversionError(Exception):
    """변환 실패 (어느 단계에서 실패했는지 stage에 기록)"""

    stage = 'convert'

    def __init__(self, message, stage=None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self):
        return f"[{self.stage}] {super().__str__()}"


class DecodeError(ConversionError):
    """입력 바이트를 이미지로 해석할 수 없음"""

    stage = 'decode'


class InvalidCropError(ConversionError):
    """크롭 영역의 비율이 맞지 않거나 원본 범위를 벗어남"""

    stage = 'fit'


class DegenerateRasterError(ConversionError):
    """폭 또는 높이가 0인 래스터"""

    stage = 'encode'
