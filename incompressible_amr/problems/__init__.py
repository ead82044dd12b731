__all__ = ['bubble', 'converge', 'shear']
